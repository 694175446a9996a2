"""Shared pytest configuration: render charts without a display."""

import matplotlib

matplotlib.use('Agg')
