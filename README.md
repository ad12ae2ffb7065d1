# hdrstack

`hdrstack` is a library of building blocks for merging bracketed raw
exposures of one scene into a high dynamic range raw image. For each pixel,
the most exposed image that covers it and is not saturated there is chosen.

## Modules

- `hdrstack.histogram`: `Histogram` counts 16-bit sample values and answers
  `percentile(frac)` and `fraction(value)` queries.
- `hdrstack.tiff`: `TiffHeader`, `IFD` and the `TiffType` field types. They
  serialise TIFF headers and image file directories to bytes. Entries larger
  than four bytes are stored out of line and the entries are sorted by tag.
  `IFD` and `TiffHeader` use the machine's byte order by default; either
  `"little"` or `"big"` can be chosen instead.
- `hdrstack.raw_parameters`: `RawParameters` is a dataclass of raw image
  metadata. It covers the following:
  - sizes and margins;
  - the colour filter pattern, `cfa(x, y)`;
  - black levels, through `adjust_black`, `black_at` and `has_black`;
  - white balance, through `adjust_white`, `auto_wb` (grey world over 8x8
    blocks without saturated pixels) and `white_mult_at`;
  - the exposure value, `log_exp`;
  - a camera matrix derived from the RGB matrix, `cam_xyz_from_rgb_cam`;
  - the TIFF orientation.

  The module also has the helpers `pseudoinverse`, `normalize_flip` and
  `tiff_orientation`.
- `hdrstack.image_stack`: `ImageStack` keeps exposures ordered from most to
  least exposed. It does the following:
  - estimates the white level with `calculate_saturation_level`;
  - chains the alignment of the images with `align`;
  - crops to the common area with `crop`;
  - computes the response functions with `compute_response_functions`;
  - builds the per-pixel layer mask with `generate_mask`.

  The images themselves are any objects that fit the `StackImage` protocol.
  The module also has `fatten_mask`, which dilates a mask over a disc, and
  `circle_border`.
- `hdrstack.preview`: helpers for rendering a preview. These are
  `gamma_table`, the per-layer tints `get_color` and `pixel_color`,
  `exposure_multiplier`, `clamp_radius`, and `PreviewGeometry` for the
  rotation by flip code.
- `hdrstack.launcher`: command-line handling. It has the following:
  - `parse_command_line`, which returns a `CommandLine` holding
    `MergeOptions` and `OutputOptions`;
  - `check_gui`;
  - `help_text`;
  - `group_bracketed_sets`, which groups files into sets by capture time;
  - `dng_file_name`.

## Installation

Python 3.10 or newer is required. The only runtime dependency is numpy.

## Examples

```python
from hdrstack.histogram import Histogram

h = Histogram([8, 3, 6, 4, 5, 2, 1, 7, 9, 3, 2, 7, 9, 9])
h.num_samples()     # 14
h.percentile(0.5)   # 5
h.fraction(2)       # 3 / 14
```

```python
from hdrstack.tiff import IFD, TiffHeader, TiffType

ifd = IFD()
ifd.add_value(254, TiffType.LONG, 0)
ifd.add_string(271, "Camera maker")
data = TiffHeader().to_bytes() + ifd.to_bytes(8, False)
assert len(data) == 8 + ifd.length()
```

`parse_command_line` and `check_gui` take the arguments that follow the
program name:

```python
from hdrstack.launcher import parse_command_line, check_gui, help_text

options = parse_command_line(["-o", "out.dng", "a.cr2", "b.cr2"])
options.output.file_name     # "out.dng"
options.merge.file_names     # ["a.cr2", "b.cr2"]
check_gui(["-o", "out.dng", "a.cr2"])   # False
print(help_text())
```

`parse_command_line` understands these options:

| Option | Meaning |
| --- | --- |
| `-o` | output file name |
| `-m` | mask file name |
| `-b` | bits per sample: 16, 24 or 32 |
| `-w` | custom white level |
| `-g` | batch gap in seconds |
| `-r` | feather radius |
| `-p` | preview size: `full`, `half` or `none` |
| `-v`, `-vv` | verbosity |
| `--no-align` | do not align the images |
| `--no-crop` | do not crop the result |
| `-B`, `--batch` | batch mode |
| `--single` | include single images in batch mode |
| `--help` | show the help |

If an option is given more than once, the last one applies. An invalid
value keeps the default and adds a message to `warnings`.

## What this package does not do

There is no command to run and no interactive interface. The package does
not decode raw files and does not read their metadata from disk. It does not
compose the merged image and does not write complete DNG files. It provides
the pieces listed above, to be combined by code that supplies raw decoding
and image objects.

## Tests

The test suite uses pytest, which is installed with the `test` extra.