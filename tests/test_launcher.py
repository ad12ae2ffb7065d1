import logging
from datetime import datetime, timedelta

import pytest

from hdrstack.launcher import (
    CommandLine,
    MergeOptions,
    OutputOptions,
    check_gui,
    dng_file_name,
    group_bracketed_sets,
    help_text,
    parse_command_line,
)


def test_defaults_match_fresh_options():
    cmd = parse_command_line([])
    assert cmd.merge == MergeOptions()
    assert cmd.output == OutputOptions()
    assert cmd.help is False
    assert cmd.warnings == []


def test_output_and_mask_names():
    cmd = parse_command_line(["-o", "out.dng", "-m", "mask.png", "a.cr2"])
    assert cmd.output.file_name == "out.dng"
    assert cmd.output.mask_file_name == "mask.png"
    assert cmd.output.save_mask is True
    assert cmd.merge.file_names == ["a.cr2"]


def test_flags():
    cmd = parse_command_line(["--no-align", "--no-crop", "-B", "--single", "--help"])
    assert cmd.merge.align is False
    assert cmd.merge.crop is False
    assert cmd.merge.batch is True
    assert cmd.merge.with_singles is True
    assert cmd.help is True


def test_long_batch_flag():
    assert parse_command_line(["--batch"]).merge.batch is True


def test_files_keep_order_and_unknown_options_ignored():
    cmd = parse_command_line(["b.nef", "--weird", "a.nef", "-a"])
    assert cmd.merge.file_names == ["b.nef", "a.nef"]


@pytest.mark.parametrize("value", [16, 24, 32])
def test_valid_bits_per_sample(value):
    assert parse_command_line(["-b", str(value)]).output.bps == value


def test_unsupported_bits_per_sample_is_silently_ignored():
    cmd = parse_command_line(["-b", "12"])
    assert cmd.output.bps == OutputOptions().bps
    assert cmd.warnings == []


def test_invalid_bits_per_sample_warns():
    cmd = parse_command_line(["-b", "abc"])
    assert cmd.output.bps == OutputOptions().bps
    assert cmd.warnings == ["Invalid -b parameter, using default."]


def test_leading_digits_are_accepted():
    assert parse_command_line(["-r", "7px"]).output.feather_radius == 7


def test_custom_white_level():
    cmd = parse_command_line(["-w", "15000"])
    assert cmd.merge.custom_wl == 15000
    assert cmd.merge.use_custom_wl is True


def test_invalid_white_level_disables_custom():
    cmd = parse_command_line(["-w", "1000", "-w", "x"])
    assert cmd.merge.use_custom_wl is False
    assert cmd.warnings == ["Invalid -w parameter, using default."]


def test_batch_gap_float():
    assert parse_command_line(["-g", "2.5"]).merge.batch_gap == 2.5


def test_invalid_batch_gap_keeps_default():
    cmd = parse_command_line(["-g", "soon"])
    assert cmd.merge.batch_gap == MergeOptions().batch_gap
    assert cmd.warnings == ["Invalid -g parameter, using default."]


@pytest.mark.parametrize("name,size", [("full", 2), ("half", 1), ("none", 0)])
def test_preview_size(name, size):
    assert parse_command_line(["-p", "none", "-p", name]).output.preview_size == size


def test_invalid_preview_size():
    cmd = parse_command_line(["-p", "huge"])
    assert cmd.output.preview_size == 2
    assert cmd.warnings == ["Invalid -p parameter, using default."]


def test_verbosity_last_wins():
    assert parse_command_line(["-v"]).log_level == logging.INFO
    assert parse_command_line(["-v", "-vv"]).log_level == logging.DEBUG
    assert parse_command_line(["-vv", "-v"]).verbosity == 1
    assert CommandLine().log_level == logging.WARNING


def test_option_without_value_at_end_is_ignored():
    cmd = parse_command_line(["a.dng", "-o"])
    assert cmd.output.file_name == ""
    assert cmd.merge.file_names == ["a.dng"]


def test_check_gui():
    assert check_gui([]) is True
    assert check_gui(["a.cr2", "b.cr2"]) is True
    assert check_gui(["-o", "x.dng", "a.cr2"]) is False
    assert check_gui(["-a", "a.cr2"]) is False
    assert check_gui(["-B", "a.cr2"]) is False
    assert check_gui(["--batch", "a.cr2"]) is False
    assert check_gui(["--help"]) is False


def test_check_gui_without_files_always_true():
    assert check_gui(["-a"]) is True
    assert check_gui(["-o"]) is True


def test_help_text_lists_options():
    text = help_text()
    assert text.startswith("Usage: ")
    assert "Merges RAW_FILES into an HDR DNG raw image." in text
    for option in ("--help", "-o OUT_FILE", "-B|--batch", "--no-crop", "-w whitelevel"):
        assert option in text
    assert "Bits per sample, can be 16, 24 or 32." in text


def test_dng_file_name():
    assert dng_file_name("result") == "result.dng"
    assert dng_file_name("result.dng") == "result.dng"
    assert dng_file_name("result.tif") == "result.tif.dng"
    assert dng_file_name("shot.DNG") == "shot.DNG.dng"


def test_dng_file_name_is_idempotent():
    once = dng_file_name("a.b")
    assert dng_file_name(once) == once


def _at(seconds):
    base = datetime(2020, 1, 1, 12, 0, 0)
    return base + timedelta(seconds=seconds)


def test_group_by_gap():
    files = ["c.cr2", "a.cr2", "b.cr2", "d.cr2"]
    intervals = [
        (_at(1), _at(1.5)),
        (_at(0), _at(0.1)),
        (_at(100), _at(100.2)),
        (_at(101), _at(101.1)),
    ]
    sets = group_bracketed_sets(files, intervals, 2.0)
    assert sets == [["a.cr2", "c.cr2"], ["b.cr2", "d.cr2"]]


def test_group_unknown_times_come_first_alone():
    files = ["x.cr2", "y.cr2", "z.cr2"]
    intervals = [(0.0, 0.5), None, (1.0, 1.2)]
    sets = group_bracketed_sets(files, intervals, 5)
    assert sets == [["y.cr2"], ["x.cr2", "z.cr2"]]


def test_group_keeps_every_file_once():
    files = [f"f{i}.nef" for i in range(6)]
    intervals = [(i * 10.0, i * 10.0 + 1) for i in range(6)]
    sets = group_bracketed_sets(files, intervals, 0.5)
    assert sorted(name for group in sets for name in group) == sorted(files)
    assert len(sets) == len(files)


def test_group_length_mismatch():
    with pytest.raises(ValueError):
        group_bracketed_sets(["a"], [], 1.0)