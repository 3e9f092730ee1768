import pytest

from benchkit.errors import MalformedParameterListError
from benchkit.options import (
    BoolOption,
    NumberOption,
    ParameterListsOption,
    StringListOption,
    StringOption,
    merge_options,
    parse_option_value,
    parse_options,
    render_flag,
    render_option,
)
from benchkit.parameters import ParameterList


class TestParseOptionValue:
    def test_bool_before_number(self) -> None:
        assert parse_option_value("show_output", True) == BoolOption(True)

    def test_numbers(self) -> None:
        assert parse_option_value("runs", 3) == NumberOption(3)
        assert parse_option_value("min_benchmarking_time", 0.5) == NumberOption(0.5)

    def test_string(self) -> None:
        assert parse_option_value("export_json", "out.json") == StringOption("out.json")

    def test_list_keeps_only_strings(self) -> None:
        parsed = parse_option_value("command_names", ["a", 1, "b"])

        assert parsed == StringListOption(("a", "b"))

    def test_parameter_lists(self) -> None:
        parsed = parse_option_value("parameter_lists", [{"var": "x", "values": ["1", "2"]}])

        assert parsed == ParameterListsOption((ParameterList("x", ["1", "2"]),))

    def test_malformed_parameter_lists_raise(self) -> None:
        with pytest.raises(MalformedParameterListError):
            parse_option_value("parameter_lists", [{"var": "x", "values": [1]}])

    @pytest.mark.parametrize("raw", [None, {"nested": 1}])
    def test_unsupported_values_map_to_none(self, raw: object) -> None:
        assert parse_option_value("weird", raw) is None


class TestParseOptions:
    def test_drops_unsupported_values(self) -> None:
        options = parse_options({"runs": 2, "nested": {"a": 1}, "shell": None})

        assert options == {"runs": NumberOption(2)}

    def test_none_is_empty(self) -> None:
        assert parse_options(None) == {}


class TestMergeOptions:
    def test_later_sources_win(self) -> None:
        merged = merge_options(
            {"runs": NumberOption(10), "warmup": NumberOption(1)},
            {"runs": NumberOption(3)},
        )

        assert merged == {"runs": NumberOption(3), "warmup": NumberOption(1)}

    def test_ignores_missing_sources(self) -> None:
        assert merge_options(None, {"runs": NumberOption(1)}) == {"runs": NumberOption(1)}


class TestRenderOption:
    def test_flag_name_uses_hyphens(self) -> None:
        assert render_flag("export_json") == "--export-json"

    def test_string(self) -> None:
        assert render_option("export_json", StringOption("r.json")) == ["--export-json", "r.json"]

    def test_number(self) -> None:
        assert render_option("runs", NumberOption(5)) == ["--runs", "5"]

    def test_true_is_bare_flag(self) -> None:
        assert render_option("show_output", BoolOption(True)) == ["--show-output"]

    def test_false_is_omitted(self) -> None:
        assert render_option("show_output", BoolOption(False)) == []

    def test_command_names_are_repeated(self) -> None:
        rendered = render_option("command_names", StringListOption(("a", "b")))

        assert rendered == ["--command-name", "a", "--command-name", "b"]

    def test_other_lists_are_ignored(self) -> None:
        assert render_option("something_else", StringListOption(("a",))) == []

    def test_parameter_lists_are_repeated(self) -> None:
        option = ParameterListsOption(
            (ParameterList("commit", ["c1", "c2"]), ParameterList("dbcache", ["450"]))
        )

        assert render_option("parameter_lists", option) == [
            "--parameter-list",
            "commit",
            "c1,c2",
            "--parameter-list",
            "dbcache",
            "450",
        ]
