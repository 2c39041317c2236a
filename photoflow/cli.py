"""
PhotoFlow Command Line Interface

Detect, decode and browse RAW and standard photos from the terminal.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import click
from tqdm import tqdm

from photoflow.config import get_config_value, load_config
from photoflow.errors import PhotoFlowError
from photoflow.io.filesystem import find_photos
from photoflow.photo import Photo
from photoflow.pipeline import build_cache, build_router
from photoflow.processors import detect_image_type
from photoflow.utils.logging import DecodeStats, setup_console_logging
from photoflow.viewer import DirectoryLoaded, NextPhoto, PhotoViewer, describe_photo

logger = logging.getLogger(__name__)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    PhotoFlow - RAW and standard photo decoding
    """
    if ctx.obj is None:
        ctx.obj = {}

    ctx.obj['config'] = load_config(config)

    if verbose:
        level = 'DEBUG'
    elif quiet:
        level = 'ERROR'
    else:
        level = get_config_value(ctx.obj['config'], 'logging.level', 'INFO')
    setup_console_logging(level, fmt=get_config_value(
        ctx.obj['config'], 'logging.format',
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


@main.command()
@click.argument('paths', nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False))
def detect(paths):
    """Print the detected format of each file."""
    failed = False
    for path in paths:
        try:
            image_type = detect_image_type(path)
        except PhotoFlowError as e:
            click.echo(f"{path}: error: {e}", err=True)
            failed = True
            continue
        kind = "raw" if image_type.is_raw() else "standard"
        click.echo(f"{path}: {image_type.name} ({kind})")
    if failed:
        raise SystemExit(1)


@main.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', required=True, type=click.Path(dir_okay=False),
              help='Where to write the decoded image (format from extension)')
@click.pass_context
def decode(ctx, path: str, output: str):
    """Decode PATH and save the RGB result to OUTPUT."""
    cache = build_cache(ctx.obj['config'])
    start = time.time()
    try:
        image = cache.get_or_decode(path)
    except PhotoFlowError as e:
        raise click.ClickException(f"Failed to decode {path}: {e}")

    try:
        image.to_pil().save(output)
    except (ValueError, OSError) as e:
        raise click.ClickException(f"Failed to write {output}: {e}")
    if not ctx.obj['quiet']:
        click.echo(f"Decoded {path} ({image.width}x{image.height}) in "
                   f"{time.time() - start:.2f}s -> {output}")


@main.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def info(path: str):
    """Show camera metadata for PATH."""
    photo = Photo(path)
    for line in describe_photo(photo):
        click.echo(line)
    if photo.exif_data is None:
        click.echo("No metadata available")


@main.command()
@click.argument('directory', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option('--passes', default=1, show_default=True,
              help='Walk through the photos this many times (later passes hit the cache)')
@click.pass_context
def browse(ctx, directory: str, passes: int):
    """Step through every photo in DIRECTORY like the viewer would."""
    config = ctx.obj['config']
    quiet = ctx.obj['quiet']

    extensions = get_config_value(config, 'browse.extensions', ['jpg', 'jpeg', 'raf', 'raw'])
    router = build_router(config)
    cache = build_cache(config, router)
    stats = DecodeStats()

    paths = find_photos(Path(directory), extensions)
    if not paths:
        click.echo(f"No photos found in {directory}")
        return
    stats.set_total(len(paths) * passes)

    with PhotoViewer(cache, extensions=extensions,
                     max_workers=int(get_config_value(config, 'browse.max_workers', 4))) as viewer:
        progress = tqdm(total=len(paths) * passes, desc="Decoding", disable=quiet)
        for _ in range(passes):
            for step in range(len(paths)):
                start = time.time()
                viewer.dispatch(DirectoryLoaded(paths) if step == 0 else NextPhoto())
                viewer.wait_idle()

                photo = viewer.current_photo
                if photo is not None and photo.image is not None:
                    _, image_type = router.select(photo.path)
                    stats.add_result(image_type.name if image_type else None,
                                     time.time() - start)
                elif photo is not None:
                    stats.add_error(str(photo.path), viewer.error or "not decoded")
                progress.update(1)
        progress.close()

    if not quiet:
        stats.print_summary(cache.get_stats())
    if stats.failed_files:
        raise SystemExit(1)


if __name__ == '__main__':
    main()
