import dataclasses

import pytest

from labkit.kvrpc import Err, GetArgs, GetReply, PutArgs, PutReply


def test_err_lookup_by_wire_string():
    assert Err("ErrVersion") is Err.VERSION
    assert Err("ErrWrongLeader") is Err.WRONG_LEADER


def test_err_str_and_format_give_wire_string():
    assert str(Err("ErrMaybe")) == "ErrMaybe"
    assert f"{Err('OK')}" == "OK"
    assert "%s" % Err("ErrNoKey") == "ErrNoKey"


def test_err_equals_plain_string():
    assert Err("ErrWrongGroup") == "ErrWrongGroup"
    assert "OK" == Err("OK")


def test_unknown_err_rejected():
    with pytest.raises(ValueError):
        Err("bogus")


def test_replies_start_at_zero_values():
    reply = GetReply()
    assert (reply.value, reply.version, reply.err) == ("", 0, "")
    assert PutReply().err == ""


def test_reply_filled_in_place():
    reply = PutReply()
    reply.err = Err.VERSION
    assert reply.err == "ErrVersion"
    assert reply == PutReply(err=Err.VERSION)


def test_args_replace_round_trip():
    args = PutArgs(key="k", value="v", version=3)
    bumped = dataclasses.replace(args, version=args.version + 1)
    assert bumped.key == args.key and bumped.value == args.value
    assert bumped.version == args.version + 1
    assert dataclasses.replace(bumped, version=3) == args


def test_get_args_equality():
    assert GetArgs("k") == GetArgs(key="k")
    assert GetArgs("k") != GetArgs("j")