import medley


def test_top_level_exports_match_docstring():
    assert sorted(medley.__all__) == ["Timeline", "format_time", "parse_time"]
    for name in medley.__all__:
        assert name in medley.__doc__
    assert not hasattr(medley, "SequencePlaybackController")
    assert not hasattr(medley, "MergeController")
