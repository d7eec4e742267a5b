"""Unit tests for Trade event decoding and block ranges."""

import pytest
from eth_utils import to_checksum_address

from tradedtokens.domain.decoding import BUY_ETH_ADDRESS, TRADE_T0, decode_trade
from tradedtokens.domain.errors import TradeDecodeError
from tradedtokens.domain.models import BlockRange

from fakes import DAI, OWNER, WETH, encode_trade_data, owner_topic, trade_log


class TestDecodeTrade:

    def test_topic_shape(self):
        assert TRADE_T0.startswith("0x") and len(TRADE_T0) == 66
        assert TRADE_T0 == TRADE_T0.lower()

    def test_decodes_all_fields(self):
        uid = bytes(range(56))
        data = encode_trade_data(DAI, WETH, sell_amount=10**18, buy_amount=3, fee=7, uid=uid)
        trade = decode_trade((TRADE_T0, owner_topic()), data)

        assert trade.owner == to_checksum_address(OWNER)
        assert trade.sell_token == DAI
        assert trade.buy_token == WETH
        assert trade.sell_amount == 10**18
        assert trade.buy_amount == 3
        assert trade.fee_amount == 7
        assert trade.order_uid == uid

    def test_accepts_bytes_and_uppercase_topic(self):
        data = bytes.fromhex(encode_trade_data(DAI, WETH)[2:])
        trade = decode_trade((TRADE_T0.upper().replace("0X", "0x"), owner_topic()), data)
        assert trade.buy_token == WETH

    def test_eth_sentinel_decodes_as_checksum(self):
        trade = decode_trade((TRADE_T0, owner_topic()), encode_trade_data(DAI, BUY_ETH_ADDRESS))
        assert trade.buy_token == BUY_ETH_ADDRESS

    def test_from_event_log(self):
        ev = trade_log(5, WETH, DAI)
        assert decode_trade(ev.topics, ev.data_hex).sell_token == WETH

    @pytest.mark.parametrize("topics, data", [
        ((TRADE_T0,), encode_trade_data(DAI, WETH)),
        (("0x" + "00" * 32, owner_topic()), encode_trade_data(DAI, WETH)),
        ((TRADE_T0, owner_topic()), "0x" + "00" * 64),
        ((TRADE_T0, owner_topic()), "0xzz"),
    ])
    def test_rejects_malformed(self, topics, data):
        with pytest.raises(TradeDecodeError):
            decode_trade(topics, data)

    def test_rejects_uid_past_end(self):
        data = encode_trade_data(DAI, WETH, uid=b"\x01" * 56)
        # bump the declared length past the payload
        raw = bytearray.fromhex(data[2:])
        raw[6 * 32:7 * 32] = (1000).to_bytes(32, "big")
        with pytest.raises(TradeDecodeError):
            decode_trade((TRADE_T0, owner_topic()), bytes(raw))


class TestBlockRange:

    def test_split_at_floor_midpoint(self):
        left, right = BlockRange(100, 103).split()
        assert (left.start, left.end) == (100, 101)
        assert (right.start, right.end) == (102, 103)

        left, right = BlockRange(100, 104).split()
        assert (left.end, right.start) == (102, 103)

    def test_two_block_range_splits_into_atoms(self):
        left, right = BlockRange(7, 8).split()
        assert left.is_atomic() and right.is_atomic()

    def test_atomic_cannot_split(self):
        with pytest.raises(ValueError):
            BlockRange(5, 5).split()

    def test_open_range(self):
        rng = BlockRange(10, "latest")
        assert rng.is_open and not rng.is_atomic()
        with pytest.raises(ValueError):
            rng.split()
        assert rng.resolve(500) == BlockRange(10, 500)
        assert BlockRange(10, 20).resolve(500) == BlockRange(10, 20)

    def test_validation(self):
        with pytest.raises(ValueError):
            BlockRange(10, 9)
        with pytest.raises(ValueError):
            BlockRange(-1, 5)
        assert BlockRange(3, 9).span() == 7
