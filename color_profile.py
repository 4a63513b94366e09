#!/usr/bin/env python3
"""
Color Profile Analyzer

This script crops the center disc out of a photograph of a round object (a cork,
a bottle cap, a coaster...) and describes its colors. Two modes are available:

- edges: mask the crop to a circle and keep only the pixels picked up by a
  Laplacian edge map, which suppresses the smooth cork texture.
- stats: convert the crop to Lab and report mean, median, peak and standard
  deviation of each channel histogram.

Usage: python color_profile.py input.jpg output.jpg
       python color_profile.py input.jpg trimmed.jpg processed.jpg --mode stats
"""

import numpy as np
import cv2
import argparse
import colour
import enum
import math
import matplotlib.pyplot as plt
import os
import sys
import time
from collections import namedtuple

__version__ = "2.5.0"

# Crop radius in pixels: a fifth of a 640 px reference frame, halved
TRIM_RADIUS = 640 // 5 // 2

HIST_BINS = 256
HIST_RANGE = [0, 256]

LAPLACIAN_KSIZE = 1
LAPLACIAN_SCALE = 5
# CV_32F edge strength -> CV_8U, saturating
EDGE_RESCALE_ALPHA = 256
EDGE_RESCALE_BETA = 0.0

# Status string returned by the edge-removal mode
PIPELINE_REVISION = "2.5"

LAB_CHANNELS = ("L", "a", "b")

REPORT_TEMPLATE = "{name}: mean {mean:.1f}, median {median:.1f}, peak {peak:.1f}, std dev {std_dev:.1f}"

# Input color space name (lower case) -> colour-science colourspace, None means sRGB
SOURCE_COLOURSPACES = {
    "srgb": None,
    "adobe rgb": "Adobe RGB (1998)",
    "adobergb": "Adobe RGB (1998)",
    "prophoto rgb": "ProPhoto RGB",
    "prophotorgb": "ProPhoto RGB",
}

ChannelStats = namedtuple("ChannelStats", ["mean", "peak", "median", "std_dev"])


class Mode(enum.Enum):
    """Post-crop stage selected for a run."""
    EDGE_REMOVAL = "edges"
    HISTOGRAM_STATS = "stats"


class ColorProfileError(Exception):
    """Base class for failures of the analysis pipeline."""


class LoadError(ColorProfileError):
    """Input image is missing or cannot be decoded."""


class CropOutOfBounds(ColorProfileError):
    """The centered crop region does not fit inside the image."""


class DegenerateHistogram(ColorProfileError):
    """A histogram has no counts at all."""


class WriteError(ColorProfileError):
    """An output file could not be written."""


def version():
    """Return the OpenCV version the analyzer runs on."""
    return cv2.__version__


def format_time(seconds):
    """Format time in a human-readable way."""
    if seconds < 1:
        return f"{seconds*1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    else:
        minutes = int(seconds // 60)
        remaining_seconds = seconds % 60
        return f"{minutes}m {remaining_seconds:.1f}s"


def _resolve_colourspace(color_space):
    key = color_space.lower()
    if key not in SOURCE_COLOURSPACES:
        raise ValueError(f"Unsupported color space: {color_space}")
    return SOURCE_COLOURSPACES[key]


def convert_to_srgb(image_rgb, color_space):
    """
    Convert an RGB image from a wide-gamut color space to sRGB using colour-science.

    Args:
        image_rgb (numpy.ndarray): RGB image in the given color space, values 0-255
        color_space (str): "sRGB", "Adobe RGB" or "ProPhoto RGB"

    Returns:
        numpy.ndarray: RGB image in sRGB, values 0-255
    """
    colourspace_name = _resolve_colourspace(color_space)
    if colourspace_name is None:
        return image_rgb

    normalized = image_rgb.astype(np.float64) / 255.0

    # Decode the source transfer curve, adapt the whitepoint, re-encode with the sRGB curve
    srgb = colour.RGB_to_RGB(
        normalized,
        colour.RGB_COLOURSPACES[colourspace_name],
        colour.RGB_COLOURSPACES['sRGB'],
        apply_cctf_decoding=True,
        apply_cctf_encoding=True,
    )

    srgb = np.clip(np.nan_to_num(srgb), 0, 1)
    return np.round(srgb * 255).astype(np.uint8)


def load_image(image_path, color_space="sRGB"):
    """
    Load an image as a 3-channel BGR grid.

    Args:
        image_path (str): Path to the input image
        color_space (str): Color space the file is encoded in ("sRGB", "Adobe RGB", "ProPhoto RGB")

    Returns:
        numpy.ndarray: BGR image, uint8, converted to sRGB if needed

    Raises:
        LoadError: if the file does not exist or cannot be decoded
    """
    colourspace_name = _resolve_colourspace(color_space)

    image_path = str(image_path)
    if not os.path.isfile(image_path):
        raise LoadError(f"Image file not found: {image_path}")

    image = cv2.imread(image_path, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise LoadError(f"Could not load image from {image_path}")

    if colourspace_name is not None:
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        image_rgb = convert_to_srgb(image_rgb, color_space)
        image = cv2.cvtColor(image_rgb, cv2.COLOR_RGB2BGR)

    return image


def write_image(image, output_path, jpeg_quality=95):
    """
    Save an image; the format follows the file extension.

    Raises:
        WriteError: if the directory is missing, the extension has no encoder
            or OpenCV fails to write the file
    """
    output_path = str(output_path)
    directory = os.path.dirname(os.path.abspath(output_path))
    if not os.path.isdir(directory):
        raise WriteError(f"Output directory does not exist: {directory}")

    params = []
    if output_path.lower().endswith(('.jpg', '.jpeg')):
        params = [cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality)]

    try:
        success = cv2.imwrite(output_path, image, params)
    except cv2.error as e:
        raise WriteError(f"Failed to save image to {output_path}: {e}") from e

    if not success:
        raise WriteError(f"Failed to save image to {output_path}")


def crop_center(image, trim_radius=TRIM_RADIUS):
    """
    Cut the square of side 2*trim_radius centered on the image.

    Args:
        image (numpy.ndarray): Source image
        trim_radius (int): Half the side of the square, in pixels

    Returns:
        numpy.ndarray: A copy of the centered square region

    Raises:
        CropOutOfBounds: if the square does not fit inside the image
    """
    if image is None or image.size == 0:
        raise ValueError("Cannot crop an empty image")
    if isinstance(trim_radius, bool) or not isinstance(trim_radius, (int, np.integer)) or trim_radius <= 0:
        raise ValueError(f"trim_radius must be a positive integer, got {trim_radius!r}")

    height, width = image.shape[:2]
    side = trim_radius * 2
    start_x = width // 2 - trim_radius
    start_y = height // 2 - trim_radius

    if start_x < 0 or start_y < 0 or start_x + side > width or start_y + side > height:
        raise CropOutOfBounds(
            f"A {side}x{side} crop does not fit in a {width}x{height} image"
        )

    return image[start_y:start_y + side, start_x:start_x + side].copy()


def circular_mask(size):
    """Single-channel mask of a filled disc of radius size/2, centered."""
    mask = np.zeros((size, size), dtype=np.uint8)
    cv2.circle(mask, (size // 2, size // 2), size // 2, 255, cv2.FILLED)
    return mask


def apply_circular_mask(image):
    """
    Keep the pixels inside the inscribed disc of a square image, black out the rest.

    Args:
        image (numpy.ndarray): Square image (1 or 3 channels)

    Returns:
        numpy.ndarray: Masked copy of the image
    """
    height, width = image.shape[:2]
    if height != width:
        raise ValueError(f"Circular masking needs a square image, got {width}x{height}")

    mask = circular_mask(height)
    return cv2.bitwise_and(image, image, mask=mask)


def laplacian_edge_map(image_bgr, ksize=LAPLACIAN_KSIZE, scale=LAPLACIAN_SCALE):
    """
    Compute an 8-bit edge map from the grayscale Laplacian of a BGR image.

    The float response is multiplied by EDGE_RESCALE_ALPHA and saturated into
    0-255, so negative responses become 0 and any positive one is "on".
    """
    gray = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2GRAY)
    laplacian = cv2.Laplacian(gray, cv2.CV_32F, ksize=ksize, scale=scale)
    rescaled = np.rint(laplacian * EDGE_RESCALE_ALPHA + EDGE_RESCALE_BETA)
    return np.clip(rescaled, 0, 255).astype(np.uint8)


def edge_filter(masked, trimmed, ksize=LAPLACIAN_KSIZE, scale=LAPLACIAN_SCALE):
    """
    Remove the cork texture: copy from the masked crop only where the edge map fires.

    Args:
        masked (numpy.ndarray): Circularly masked crop (BGR)
        trimmed (numpy.ndarray): Unmasked crop the edge map is computed from (BGR)
        ksize (int): Laplacian aperture size
        scale (float): Laplacian scale factor

    Returns:
        numpy.ndarray: BGR image with non-edge pixels set to black
    """
    if masked.shape != trimmed.shape:
        raise ValueError(f"Shape mismatch: {masked.shape} vs {trimmed.shape}")

    edges = laplacian_edge_map(trimmed, ksize, scale)
    return cv2.bitwise_and(masked, masked, mask=edges)


def _check_three_channels(image):
    if image is None or image.ndim != 3 or image.shape[2] != 3:
        shape = None if image is None else image.shape
        raise ValueError(f"Expected a 3-channel image, got shape {shape}")


def to_lab(image_bgr):
    """
    Convert a BGR image to Lab.

    uint8 input gives OpenCV's 8-bit Lab encoding (L scaled to 0-255, a and b
    offset by 128). Float input must be in [0, 1] and gives true L*a*b* values.
    """
    _check_three_channels(image_bgr)
    if image_bgr.dtype == np.float64:
        image_bgr = image_bgr.astype(np.float32)
    return cv2.cvtColor(image_bgr, cv2.COLOR_BGR2LAB)


def from_lab(image_lab):
    """Inverse of to_lab."""
    _check_three_channels(image_lab)
    if image_lab.dtype == np.float64:
        image_lab = image_lab.astype(np.float32)
    return cv2.cvtColor(image_lab, cv2.COLOR_LAB2BGR)


def compute_histograms(image, mask=None, bins=HIST_BINS):
    """
    Compute one histogram per channel of an 8-bit, 3-channel image.

    Args:
        image (numpy.ndarray): uint8 image with 3 channels
        mask (numpy.ndarray): Optional uint8 mask, only non-zero pixels are counted
        bins (int): Number of bins over the range 0-255

    Returns:
        numpy.ndarray: float64 array of shape (3, bins)
    """
    _check_three_channels(image)
    if image.dtype != np.uint8:
        raise ValueError(f"Histograms need an 8-bit image, got {image.dtype}")
    if mask is not None and mask.shape != image.shape[:2]:
        raise ValueError(f"Mask shape {mask.shape} does not match image {image.shape[:2]}")

    histograms = [
        cv2.calcHist([image], [channel], mask, [bins], HIST_RANGE).ravel()
        for channel in range(3)
    ]
    return np.stack(histograms).astype(np.float64)


def histogram_stats(hist, bins=HIST_BINS):
    """
    Derive mean, peak, median and standard deviation from a histogram.

    The peak is the index of the most populated bin (the lowest index on ties),
    not the count stored in it. The median is the first bin at which the
    cumulative count reaches half the total.

    Args:
        hist (array-like): Non-negative counts, one per bin
        bins (int): Expected number of bins

    Returns:
        ChannelStats: (mean, peak, median, std_dev)

    Raises:
        DegenerateHistogram: if all counts are zero
    """
    counts = np.asarray(hist, dtype=np.float64).ravel()
    if counts.shape[0] != bins:
        raise ValueError(f"Expected {bins} bins, got {counts.shape[0]}")
    if not np.all(np.isfinite(counts)) or np.any(counts < 0):
        raise ValueError("Histogram counts must be finite and non-negative")

    total = counts.sum()
    if total == 0:
        raise DegenerateHistogram("Histogram is empty, statistics are undefined")

    levels = np.arange(bins, dtype=np.float64)
    mean = float(np.dot(levels, counts) / total)
    peak = int(np.argmax(counts))

    cumulative = np.cumsum(counts)
    median = int(np.searchsorted(cumulative, total / 2.0, side="left"))

    variance = float(np.dot((levels - mean) ** 2, counts) / total)
    std_dev = math.sqrt(variance)

    return ChannelStats(mean=mean, peak=peak, median=median, std_dev=std_dev)


def channel_statistics(histograms, channel_names=LAB_CHANNELS):
    """Run histogram_stats on each channel, keyed by channel name."""
    if len(histograms) != len(channel_names):
        raise ValueError(f"Expected {len(channel_names)} histograms, got {len(histograms)}")
    return {
        name: histogram_stats(hist, len(hist))
        for name, hist in zip(channel_names, histograms)
    }


def analyze_channels(image, mask=None, channel_names=LAB_CHANNELS):
    """
    Histogram each channel of an 8-bit image and derive its statistics.

    Args:
        image (numpy.ndarray): uint8 image with 3 channels, usually Lab
        mask (numpy.ndarray): Optional uint8 mask, only non-zero pixels are counted
        channel_names (tuple): Keys of the result, in channel order

    Returns:
        dict: Channel name -> ChannelStats
    """
    return channel_statistics(compute_histograms(image, mask), channel_names)


def format_report(stats):
    """
    Format per-channel statistics as one line per channel.

    Args:
        stats (dict): Channel name -> ChannelStats, in report order

    Returns:
        str: e.g. "L: mean 128.0, median 128.0, peak 128.0, std dev 0.0"
    """
    lines = []
    for name, channel in stats.items():
        lines.append(REPORT_TEMPLATE.format(
            name=name,
            mean=channel.mean,
            median=channel.median,
            peak=channel.peak,
            std_dev=channel.std_dev,
        ))
    return "\n".join(lines)


def create_channel_histogram_plot(histograms, stats, output_path, channel_names=LAB_CHANNELS):
    """
    Create and save a chart with one histogram panel per channel.

    Args:
        histograms (numpy.ndarray): Array of shape (3, bins) from compute_histograms
        stats (dict): Channel name -> ChannelStats
        output_path (str): Path to save the chart image
        channel_names (tuple): Panel titles, in channel order

    Raises:
        WriteError: if the chart cannot be saved
    """
    bar_colors = ('dimgray', 'indianred', 'goldenrod')

    fig, axes = plt.subplots(1, len(channel_names), figsize=(15, 4.5))
    for ax, name, hist, bar_color in zip(axes, channel_names, histograms, bar_colors):
        channel = stats[name]
        ax.bar(np.arange(len(hist)), hist, width=1.0, color=bar_color, alpha=0.7)
        ax.axvline(channel.mean, color='black', linestyle='--', linewidth=1, label='Mean')
        ax.axvline(channel.median, color='steelblue', linestyle=':', linewidth=1.5, label='Median')
        ax.set_xlim(0, len(hist) - 1)
        ax.set_xlabel(f'{name} (0-{len(hist) - 1})')
        ax.set_ylabel('Pixel Count')
        ax.set_title(f'Channel {name}')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='upper right')

        stats_text = (f'Mean: {channel.mean:.1f}\nMedian: {channel.median}\n'
                      f'Peak: {channel.peak}\nStd: {channel.std_dev:.1f}')
        ax.text(0.02, 0.98, stats_text, transform=ax.transAxes,
                verticalalignment='top', bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))

    plt.tight_layout()
    try:
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
    except (OSError, ValueError) as e:
        # ValueError: matplotlib has no writer for the extension
        raise WriteError(f"Failed to save histogram chart to {output_path}: {e}") from e
    finally:
        plt.close(fig)
    print(f"Channel histogram saved to: {output_path}")


def _remove_outputs(paths):
    for path in paths:
        if os.path.exists(path):
            os.remove(path)


def process_image(input_path, output_path, processed_output_path=None, mode=Mode.EDGE_REMOVAL,
                  trim_radius=TRIM_RADIUS, mask_statistics=False, color_space="sRGB",
                  histogram_plot_path=None, verbose=False):
    """
    Run the crop pipeline on one image.

    Edge-removal mode masks the crop to a disc, keeps the Laplacian edges and
    writes the result to output_path. It returns PIPELINE_REVISION.

    Histogram-statistics mode writes the square crop to output_path and its
    Lab conversion to processed_output_path, and returns the formatted report.
    The histograms cover the whole square unless mask_statistics is set, in
    which case only the inscribed disc is counted.

    Nothing is written until every computation has succeeded. If one output
    fails to save, outputs already saved by this call are removed.

    Args:
        input_path (str): Image to analyze
        output_path (str): Edge-filtered image (edges) or trimmed crop (stats)
        processed_output_path (str): Lab image, required in stats mode
        mode (Mode or str): Post-crop stage to run
        trim_radius (int): Half the side of the centered crop
        mask_statistics (bool): Restrict histograms to the circular mask
        color_space (str): Color space of the input file
        histogram_plot_path (str): Optional chart of the channel histograms (stats mode)
        verbose (bool): Print progress and timings

    Returns:
        str: Status string (edges) or the statistics report (stats)
    """
    mode = Mode(mode)
    if mode is Mode.HISTOGRAM_STATS and processed_output_path is None:
        raise ValueError("Histogram statistics mode needs a processed output path")
    if mode is not Mode.HISTOGRAM_STATS and histogram_plot_path is not None:
        raise ValueError("A histogram chart is only produced in histogram statistics mode")

    start = time.time()
    if verbose:
        print(f"Loading image: {input_path}")
    image = load_image(input_path, color_space)

    trimmed = crop_center(image, trim_radius)
    if verbose:
        height, width = image.shape[:2]
        print(f"Cropped {trimmed.shape[1]}x{trimmed.shape[0]} region from {width}x{height} image")

    histograms = stats = None
    if mode is Mode.EDGE_REMOVAL:
        masked = apply_circular_mask(trimmed)
        result = edge_filter(masked, trimmed)
        outputs = [(result, output_path)]
        status = PIPELINE_REVISION
    else:
        lab = to_lab(trimmed)
        mask = circular_mask(trimmed.shape[0]) if mask_statistics else None
        stats = analyze_channels(lab, mask)
        if histogram_plot_path is not None:
            histograms = compute_histograms(lab, mask)
        outputs = [(trimmed, output_path), (lab, processed_output_path)]
        status = format_report(stats)
    if verbose:
        print(f"{mode.value} stage completed in {format_time(time.time() - start)}")

    written = []
    try:
        for output_image, path in outputs:
            write_image(output_image, path)
            written.append(str(path))
            if verbose:
                print(f"Image saved to: {path}")
        if histograms is not None:
            create_channel_histogram_plot(histograms, stats, histogram_plot_path)
    except WriteError:
        _remove_outputs(written)
        raise

    return status


def main():
    """Main function to run the color profile analyzer."""
    parser = argparse.ArgumentParser(
        description="Crop the center disc of a photograph and analyze its colors"
    )
    parser.add_argument("input_image", help="Path to the input image")
    parser.add_argument("output_image",
                        help="Output path: edge-filtered image (edges) or trimmed crop (stats)")
    parser.add_argument("processed_image", nargs="?", default=None,
                        help="Output path for the Lab-converted crop (required with --mode stats)")
    parser.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.EDGE_REMOVAL.value,
                        help="Post-crop stage: edges (cork removal) or stats (Lab histogram statistics)")
    parser.add_argument("--trim-radius", type=int, default=TRIM_RADIUS,
                        help=f"Half the side of the centered crop in pixels (default: {TRIM_RADIUS})")
    parser.add_argument("--mask-stats", action="store_true",
                        help="Compute statistics inside the circular mask only")
    parser.add_argument("--color-space", choices=["sRGB", "Adobe RGB", "ProPhoto RGB"], default="sRGB",
                        help="Color space to assume for input image (default: sRGB)")
    parser.add_argument("--histogram", action="store_true",
                        help="Also save a chart of the Lab channel histograms (stats mode)")
    parser.add_argument("--quiet", action="store_true",
                        help="Only print the result")
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__} (OpenCV {version()})")

    args = parser.parse_args()
    mode = Mode(args.mode)

    if mode is Mode.HISTOGRAM_STATS and args.processed_image is None:
        print("Error: --mode stats requires a processed_image path")
        return 1
    if args.histogram and mode is not Mode.HISTOGRAM_STATS:
        print("Error: --histogram is only available with --mode stats")
        return 1

    histogram_path = None
    if args.histogram:
        histogram_path = os.path.splitext(args.processed_image)[0] + '_histogram.png'

    try:
        total_start = time.time()

        result = process_image(
            args.input_image,
            args.output_image,
            args.processed_image,
            mode=mode,
            trim_radius=args.trim_radius,
            mask_statistics=args.mask_stats,
            color_space=args.color_space,
            histogram_plot_path=histogram_path,
            verbose=not args.quiet,
        )

        if mode is Mode.HISTOGRAM_STATS:
            print(result)
        else:
            print(f"Pipeline revision: {result}")

        if not args.quiet:
            total_time = time.time() - total_start
            print(f"\nTotal processing completed in {format_time(total_time)}")

    except Exception as e:
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
