"""Command-line handling: option parsing, help text and bracketed-set grouping."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Union

log = logging.getLogger(__name__)

PROGRAM_NAME = "hdrstack"
INVALID_PARAMETER = "Invalid {} parameter, using default."
VALID_BITS_PER_SAMPLE = (32, 24, 16)
PREVIEW_SIZES = {"full": 2, "half": 1, "none": 0}

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1

TimePoint = Union[datetime, float, int]
Interval = tuple[TimePoint, TimePoint]


@dataclass
class MergeOptions:
    """Options that control how input images are loaded and merged."""

    file_names: list[str] = field(default_factory=list)
    align: bool = True
    crop: bool = True
    batch: bool = False
    with_singles: bool = False
    batch_gap: float = 2.0
    use_custom_wl: bool = False
    custom_wl: int = 16383


@dataclass
class OutputOptions:
    """Options that control how the merged result is written."""

    file_name: str = ""
    mask_file_name: str = ""
    save_mask: bool = False
    bps: int = 16
    feather_radius: int = 3
    preview_size: int = 2


@dataclass
class CommandLine:
    """Everything the command line asked for."""

    merge: MergeOptions = field(default_factory=MergeOptions)
    output: OutputOptions = field(default_factory=OutputOptions)
    help: bool = False
    verbosity: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def log_level(self) -> int:
        """Logging level matching the requested verbosity."""
        return {0: logging.WARNING, 1: logging.INFO}.get(self.verbosity, logging.DEBUG)


def _leading_int(text: str) -> int:
    match = _INT_PREFIX.match(text)
    if match is None:
        raise ValueError(f"no integer in {text!r}")
    value = int(match.group(1))
    if not _INT_MIN <= value <= _INT_MAX:
        raise OverflowError(f"integer out of range: {text!r}")
    return value


def _leading_float(text: str) -> float:
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        raise ValueError(f"no number in {text!r}")
    return float(match.group(1))


def parse_command_line(argv: Sequence[str]) -> CommandLine:
    """Parse the arguments that follow the program name.

    Unknown options are ignored; of repeated options the last one wins.
    Invalid option values keep the default and add a warning.
    """
    result = CommandLine()
    merge, output = result.merge, result.output
    args = list(argv)

    def warn(option: str) -> None:
        message = INVALID_PARAMETER.format(option)
        result.warnings.append(message)
        log.warning(message)

    it = iter(args)
    for arg in it:
        if arg in ("-o", "-m", "-b", "-w", "-g", "-r", "-p"):
            value = next(it, None)
            if value is None:
                continue
            if arg == "-o":
                output.file_name = value
            elif arg == "-m":
                output.mask_file_name = value
                output.save_mask = True
            elif arg == "-b":
                try:
                    bps = _leading_int(value)
                except ValueError:
                    warn(arg)
                else:
                    if bps in VALID_BITS_PER_SAMPLE:
                        output.bps = bps
            elif arg == "-w":
                try:
                    merge.custom_wl = _leading_int(value)
                    merge.use_custom_wl = True
                except ValueError:
                    warn(arg)
                    merge.use_custom_wl = False
            elif arg == "-g":
                try:
                    merge.batch_gap = _leading_float(value)
                except ValueError:
                    warn(arg)
            elif arg == "-r":
                try:
                    output.feather_radius = _leading_int(value)
                except ValueError:
                    warn(arg)
            else:
                if value in PREVIEW_SIZES:
                    output.preview_size = PREVIEW_SIZES[value]
                else:
                    warn(arg)
        elif arg == "-v":
            result.verbosity = 1
        elif arg == "-vv":
            result.verbosity = 2
        elif arg == "--no-align":
            merge.align = False
        elif arg == "--no-crop":
            merge.crop = False
        elif arg in ("--batch", "-B"):
            merge.batch = True
        elif arg == "--single":
            merge.with_singles = True
        elif arg == "--help":
            result.help = True
        elif not arg.startswith("-"):
            merge.file_names.append(arg)
    return result


def check_gui(argv: Sequence[str]) -> bool:
    """Whether the arguments call for the interactive interface.

    ``--help`` never does; otherwise it is wanted unless an output name,
    ``-a`` or batch mode is given, or when no input files are named.
    """
    num_files = 0
    use_gui = True
    it = iter(argv)
    for arg in it:
        if arg == "-o":
            if next(it, None) is not None:
                use_gui = False
        elif arg in ("-a", "--batch", "-B"):
            use_gui = False
        elif arg == "--help":
            return False
        elif not arg.startswith("-"):
            num_files += 1
    return use_gui or num_files == 0


_HELP_OPTIONS = (
    ("--help        ", "Shows this message."),
    ("-o OUT_FILE   ", "Sets OUT_FILE as the output file name."),
    ("              ", "The following parameters are accepted, most useful in batch mode:"),
    ("              - %if[n]: ", "Replaced by the base file name of image n. Image file names"),
    ("                ", "are first sorted in lexicographical order. Besides, n = -1 is the"),
    ("                ", "last image, n = -2 is the previous to the last image, and so on."),
    ("              - %iF[n]: ", "Replaced by the base file name of image n without the extension."),
    ("              - %id[n]: ", "Replaced by the directory name of image n."),
    ("              - %in[n]: ", "Replaced by the numerical suffix of image n, if it exists."),
    ("                ", "For instance, in IMG_1234.CR2, the numerical suffix would be 1234."),
    ("              - %%: ", "Replaced by a single %."),
    ("-a            ", "Calculates the output file name as %id[-1]/%iF[0]-%in[-1].dng."),
    ("-B|--batch    ", "Batch mode: Input images are automatically grouped into bracketed sets,"),
    ("              ", "by comparing the creation time. Implies -a if no output file name is given."),
    ("-g gap        ", "Batch gap, maximum difference in seconds between two images of the same set."),
    ("--single      ", "Include single images in batch mode (the default is to skip them.)"),
    ("-b BPS        ", "Bits per sample, can be 16, 24 or 32."),
    ("--no-align    ", "Do not auto-align source images."),
    ("--no-crop     ", "Do not crop the output image to the optimum size."),
    ("-m MASK_FILE  ", "Saves the mask to MASK_FILE as a PNG image."),
    ("              ", "Besides the parameters accepted by -o, it also accepts:"),
    ("              - %of: ", "Replaced by the base file name of the output file."),
    ("              - %od: ", "Replaced by the directory name of the output file."),
    ("-r radius     ", "Mask blur radius, to soften transitions between images. Default is 3 pixels."),
    ("-p size       ", "Preview size. Can be full, half or none."),
    ("-v            ", "Verbose mode."),
    ("-vv           ", "Debug mode."),
    ("-w whitelevel ", "Use custom white level."),
    ("RAW_FILES     ", "The input raw files."),
)


def help_text() -> str:
    """The usage message."""
    lines = [
        f"Usage: {PROGRAM_NAME} [--help] [OPTIONS ...] [RAW_FILES ...]",
        "Merges RAW_FILES into an HDR DNG raw image.",
        "If similar options are specified, only the last one prevails.",
        "",
        "Options:",
    ]
    lines.extend(f"    {option}{text}" for option, text in _HELP_OPTIONS)
    return "\n".join(lines) + "\n"


def _seconds(delta) -> float:
    if isinstance(delta, timedelta):
        return delta.total_seconds()
    return float(delta)


def _difference(a: Interval, b: Interval) -> float:
    """Seconds between two capture intervals; zero when they overlap."""
    first, second = (a, b) if a[0] <= b[0] else (b, a)
    return max(0.0, _seconds(second[0] - first[1]))


def group_bracketed_sets(
    files: Sequence[str],
    intervals: Sequence[Interval | None],
    gap: float,
) -> list[list[str]]:
    """Group files into bracketed sets by capture time.

    ``intervals[i]`` is the (start, end) capture time of ``files[i]``, or
    None when unknown; such files form sets of their own, first. The others
    are sorted by time and a new set starts whenever the distance to the
    previous image exceeds ``gap`` seconds.
    """
    if len(files) != len(intervals):
        raise ValueError("files and intervals differ in length")
    result: list[list[str]] = []
    dated: list[tuple[Interval, str]] = []
    for name, interval in zip(files, intervals):
        if interval is None:
            result.append([name])
        else:
            dated.append((tuple(interval), name))
    dated.sort()
    last: Interval | None = None
    for interval, name in dated:
        if last is None or _difference(last, interval) > gap:
            result.append([])
        result[-1].append(name)
        last = interval
    for number, names in enumerate(result):
        log.info("Set %d: %s", number, " ".join(names))
    return result


def dng_file_name(name: str) -> str:
    """``name`` with a ``.dng`` extension appended unless it already has one."""
    return name if name.endswith(".dng") else name + ".dng"