"""ShowReel: product photo → marketing video, plus Uwear virtual try-on."""

__version__ = "0.1.0"
