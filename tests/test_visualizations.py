"""
Test the channel histogram chart.
"""

import pytest
import numpy as np
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend for testing
import matplotlib.pyplot as plt
from unittest.mock import patch

import color_profile


@pytest.fixture
def lab_histograms():
    rng = np.random.default_rng(21)
    image = rng.normal(128, 20, (64, 64, 3)).clip(0, 255).astype(np.uint8)
    histograms = color_profile.compute_histograms(image)
    return histograms, color_profile.channel_statistics(histograms)


class TestChannelHistogramPlot:
    """Test channel histogram chart generation."""

    def test_create_plot_basic(self, lab_histograms, temp_dir):
        histograms, stats = lab_histograms
        output_path = temp_dir / "channels.png"

        color_profile.create_channel_histogram_plot(histograms, stats, str(output_path))

        assert output_path.exists()
        assert output_path.stat().st_size > 0

    def test_single_bin_histograms(self, temp_dir, test_helpers):
        """A solid image gives a single bar per panel."""
        histograms = np.stack([test_helpers.histogram_with({value: 100}) for value in (60, 128, 128)])
        stats = color_profile.channel_statistics(histograms)
        output_path = temp_dir / "solid.png"

        color_profile.create_channel_histogram_plot(histograms, stats, str(output_path))

        assert output_path.exists()

    def test_invalid_path(self, lab_histograms):
        histograms, stats = lab_histograms
        with pytest.raises(color_profile.WriteError):
            color_profile.create_channel_histogram_plot(
                histograms, stats, "/nonexistent/directory/channels.png"
            )

    def test_unsupported_extension(self, lab_histograms, temp_dir):
        histograms, stats = lab_histograms
        output_path = temp_dir / "channels.xyz"

        with pytest.raises(color_profile.WriteError):
            color_profile.create_channel_histogram_plot(histograms, stats, str(output_path))

        assert not output_path.exists()

    def test_figure_closed_after_failure(self, lab_histograms):
        histograms, stats = lab_histograms
        open_before = len(plt.get_fignums())

        with pytest.raises(color_profile.WriteError):
            color_profile.create_channel_histogram_plot(
                histograms, stats, "/nonexistent/directory/channels.png"
            )

        assert len(plt.get_fignums()) == open_before

    @patch('matplotlib.figure.Figure.savefig')
    def test_savefig_called(self, mock_savefig, lab_histograms, temp_dir):
        histograms, stats = lab_histograms
        output_path = temp_dir / "channels.png"

        color_profile.create_channel_histogram_plot(histograms, stats, str(output_path))

        mock_savefig.assert_called_once()
        assert str(output_path) in str(mock_savefig.call_args)

    def test_prints_saved_path(self, lab_histograms, temp_dir):
        histograms, stats = lab_histograms
        output_path = temp_dir / "channels.png"

        with patch('builtins.print') as mock_print:
            color_profile.create_channel_histogram_plot(histograms, stats, str(output_path))

        mock_print.assert_called_once_with(f"Channel histogram saved to: {output_path}")
