"""Tests for webhook payload extraction and transfer normalization."""

from __future__ import annotations

import math

import pytest

from core.models import Transfer
from core.transfers import (
    as_number,
    extract_activity,
    extract_transfers,
    normalize_transfer,
)


# ── Activity extraction ───────────────────────────────────────────────────


class TestExtractActivity:
    @pytest.mark.parametrize("payload", [None, {}, [], "text", 42, {"event": {}}, {"data": None}])
    def test_unknown_shapes_yield_nothing(self, payload):
        assert extract_activity(payload) == []

    def test_event_activity(self):
        assert extract_activity({"event": {"activity": [{"to": "0x1"}]}}) == [{"to": "0x1"}]

    def test_data_activity(self):
        assert extract_activity({"data": {"activity": [{"to": "0x2"}]}}) == [{"to": "0x2"}]

    def test_top_level_activity(self):
        assert extract_activity({"activity": [{"to": "0x3"}]}) == [{"to": "0x3"}]

    def test_event_activity_wins_over_top_level(self):
        payload = {
            "event": {"activity": [{"to": "0xevent"}]},
            "activity": [{"to": "0xtop"}],
        }
        assert extract_activity(payload) == [{"to": "0xevent"}]

    def test_empty_list_falls_through_to_next_path(self):
        payload = {"event": {"activity": []}, "data": {"activity": [{"to": "0xdata"}]}}
        assert extract_activity(payload) == [{"to": "0xdata"}]

    def test_non_list_activity_is_ignored(self):
        payload = {"event": {"activity": {"to": "0xdict"}}, "activity": [{"to": "0xlist"}]}
        assert extract_activity(payload) == [{"to": "0xlist"}]


# ── Amount coercion ───────────────────────────────────────────────────────


class TestAsNumber:
    def test_numbers_pass_through(self):
        assert as_number(20) == 20.0
        assert as_number(19.99) == 19.99

    def test_numeric_strings_parse(self):
        assert as_number("20") == 20.0
        assert as_number(" 19.989999999 ") == pytest.approx(19.989999999)

    @pytest.mark.parametrize("value", [None, "", "abc", True, False, [], {}, "0x10"])
    def test_everything_else_is_nan(self, value):
        assert math.isnan(as_number(value))


# ── Field aliases ─────────────────────────────────────────────────────────


class TestNormalizeTransfer:
    def test_alchemy_shape(self):
        raw = {
            "fromAddress": "0xSENDER",
            "toAddress": "0xRECEIVER",
            "value": 20,
            "rawContract": {"address": "0xUSDC", "rawValue": "0x01312d00"},
            "hash": "0xTX",
        }
        assert normalize_transfer(raw) == Transfer(
            to="0xreceiver", sender="0xsender", token="0xusdc", amount=20.0, tx_hash="0xTX",
        )

    def test_first_alias_wins(self):
        raw = {"to": "0xA", "toAddress": "0xB", "receiver": "0xC"}
        assert normalize_transfer(raw).to == "0xa"

    def test_empty_alias_falls_through(self):
        raw = {"to": "", "receiver": "0xC"}
        assert normalize_transfer(raw).to == "0xc"

    def test_token_aliases(self):
        assert normalize_transfer({"contractAddress": "0xT1"}).token == "0xt1"
        assert normalize_transfer({"assetContractAddress": "0xT2"}).token == "0xt2"
        assert normalize_transfer({"rawContract": "garbage", "contractAddress": "0xT3"}).token == "0xt3"

    def test_tx_hash_aliases(self):
        assert normalize_transfer({"transactionHash": "0xH1"}).tx_hash == "0xH1"
        assert normalize_transfer({"txHash": "0xH2"}).tx_hash == "0xH2"

    def test_amount_from_amount_field(self):
        assert normalize_transfer({"amount": "21.5"}).amount == 21.5

    def test_zero_value_is_not_skipped(self):
        assert normalize_transfer({"value": 0, "amount": 50}).amount == 0.0

    def test_absent_fields_default(self):
        t = normalize_transfer({})
        assert (t.to, t.sender, t.token, t.tx_hash) == ("", "", "", "")
        assert math.isnan(t.amount)

    def test_non_dict_record(self):
        t = normalize_transfer("not a record")
        assert t.to == ""
        assert math.isnan(t.amount)

    def test_non_string_address_is_empty(self):
        assert normalize_transfer({"to": 12345}).to == ""


def test_extract_transfers_normalizes_each_record():
    payload = {"event": {"activity": [
        {"to": "0xA", "value": "1"},
        {"to": "0xB", "value": "2"},
    ]}}
    transfers = extract_transfers(payload)
    assert [t.to for t in transfers] == ["0xa", "0xb"]
    assert [t.amount for t in transfers] == [1.0, 2.0]
