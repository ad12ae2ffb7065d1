"""Building blocks for merging bracketed raw exposures: histograms, TIFF directories, raw metadata, image stacks, preview helpers and option parsing."""

__version__ = "0.1.0"