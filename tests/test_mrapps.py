import os
import time
from unittest import mock

import pytest

from labkit.mapreduce import KeyValue
from labkit.mrapps import (
    App,
    crash_map,
    crash_reduce,
    early_exit_map,
    early_exit_reduce,
    get_app,
    indexer_map,
    indexer_reduce,
    jobcount_map,
    jobcount_reduce,
    mtiming_map,
    mtiming_reduce,
    nocrash_map,
    nocrash_reduce,
    nparallel,
    rtiming_map,
    rtiming_reduce,
    wc_map,
    wc_reduce,
)


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_wc_map_splits_on_non_letters():
    assert wc_map("ignored.txt", "Hello, world! hello") == [
        KeyValue("Hello", "1"),
        KeyValue("world", "1"),
        KeyValue("hello", "1"),
    ]


def test_wc_map_digits_and_unicode():
    words = [kv.key for kv in wc_map("f", "abc123def café_naïve")]
    assert words == ["abc", "def", "café", "naïve"]


def test_wc_map_empty():
    assert wc_map("f", "  123 ,.; ") == []


def test_wc_reduce_counts_values():
    assert wc_reduce("word", ["1", "1", "1"]) == "3"


def test_indexer_map_distinct_words():
    result = indexer_map("doc1", "the cat the dog")
    assert sorted(kv.key for kv in result) == ["cat", "dog", "the"]
    assert {kv.value for kv in result} == {"doc1"}


def test_indexer_reduce_format():
    values = ["pg-b.txt", "pg-a.txt", "pg-c.txt"]
    count, _, docs = indexer_reduce("word", list(values)).partition(" ")
    assert int(count) == len(values)
    assert docs.split(",") == sorted(values)


def test_nocrash_map_pairs():
    result = nocrash_map("f.txt", "héllo")
    assert [kv.key for kv in result] == ["a", "b", "c", "d"]
    assert result[0].value == "f.txt"
    assert int(result[1].value) == len(b"f.txt")
    assert int(result[2].value) == len("héllo".encode())
    assert result[3].value == "xyzzy"


def test_nocrash_reduce_sorted():
    values = ["b", "c", "a"]
    assert nocrash_reduce("k", values).split(" ") == sorted(values)
    assert values == ["b", "c", "a"]


def test_crash_map_without_crash_matches_nocrash():
    with mock.patch("secrets.randbelow", return_value=900):
        assert crash_map("in.txt", "data") == nocrash_map("in.txt", "data")


def test_crash_reduce_without_crash():
    with mock.patch("secrets.randbelow", return_value=999):
        assert crash_reduce("k", ["z", "y"]).split(" ") == ["y", "z"]


def test_crash_map_exits_process():
    with mock.patch("secrets.randbelow", return_value=10), mock.patch(
        "os._exit", side_effect=SystemExit
    ) as fake_exit:
        with pytest.raises(SystemExit):
            crash_map("f", "c")
    fake_exit.assert_called_once_with(1)


def test_crash_map_stalls():
    with mock.patch("secrets.randbelow", side_effect=[500, 1234]), mock.patch(
        "time.sleep"
    ) as fake_sleep:
        result = crash_map("f", "c")
    fake_sleep.assert_called_once_with(1.234)
    assert result[0] == KeyValue("a", "f")


def test_early_exit_map():
    assert early_exit_map("pg-tom.txt", "text") == [KeyValue("pg-tom.txt", "1")]


def test_early_exit_reduce_slow_keys_sleep():
    with mock.patch("time.sleep") as fake_sleep:
        assert int(early_exit_reduce("pg-sherlock.txt", ["1", "1"])) == 2
    fake_sleep.assert_called_once_with(3)


def test_early_exit_reduce_fast_keys():
    with mock.patch("time.sleep") as fake_sleep:
        assert int(early_exit_reduce("pg-other.txt", ["1"])) == 1
    fake_sleep.assert_not_called()


def test_jobcount_counts_invocations(in_tmp):
    before = int(jobcount_reduce("a", []))
    with mock.patch("time.sleep"):
        assert jobcount_map("f", "c") == [KeyValue("a", "x")]
        jobcount_map("g", "c")
    after = int(jobcount_reduce("a", []))
    assert after - before == 2
    markers = [p for p in in_tmp.iterdir() if p.name.startswith("mr-worker-jobcount")]
    assert all(p.read_bytes() == b"x" for p in markers)


def test_nparallel_counts_self_and_removes_marker(in_tmp):
    (in_tmp / "mr-worker-map-notapid").write_bytes(b"x")
    marker = in_tmp / f"mr-worker-map-{os.getpid()}"
    seen = []
    with mock.patch("time.sleep", side_effect=lambda s: seen.append(marker.exists())):
        assert nparallel("map") == 1
    assert seen == [True]
    assert not marker.exists()


def test_mtiming_map_keys(in_tmp):
    pid = os.getpid()
    with mock.patch("time.sleep"):
        result = mtiming_map("f", "c")
    assert [kv.key for kv in result] == [f"times-{pid}", f"parallel-{pid}"]
    assert abs(float(result[0].value) - time.time()) < 60
    assert int(result[1].value) >= 1


def test_mtiming_reduce_sorted():
    assert mtiming_reduce("k", ["2.5", "1.5"]).split(" ") == ["1.5", "2.5"]


def test_rtiming_map_keys():
    result = rtiming_map("f", "c")
    assert [kv.key for kv in result] == list("abcdefghij")
    assert {kv.value for kv in result} == {"1"}


def test_rtiming_reduce_counts_parallel(in_tmp):
    with mock.patch("time.sleep"):
        assert rtiming_reduce("a", ["1"]) == "1"


def test_get_app_returns_functions():
    app = get_app("wc")
    assert isinstance(app, App)
    assert app.map is wc_map and app.reduce is wc_reduce
    assert get_app("indexer").reduce is indexer_reduce


def test_get_app_unknown():
    with pytest.raises(KeyError):
        get_app("nope")