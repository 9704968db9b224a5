from conftest import MORE_TAG, frame, text_chunks

from latency_proxy.framer import RECORD_SIZE, TERMINAL_TAG, RecordFramer


def test_single_terminal_record_completes():
    payload = b"x" * 512
    f = RecordFramer()
    assert f.feed(TERMINAL_TAG + payload) is True
    assert f.complete
    assert f.payloads == [payload]


def test_split_delivery_gives_identical_result():
    data = TERMINAL_TAG + bytes(range(256)) * 2
    whole = RecordFramer()
    whole.feed(data)

    split = RecordFramer()
    assert split.feed(data[:3]) is False
    assert split.pending == 3
    assert split.feed(data[3:]) is True
    assert split.payloads == whole.payloads
    assert split.complete == whole.complete


def test_byte_by_byte_delivery():
    data = frame(text_chunks(b"a" * 700))
    f = RecordFramer()
    done = [f.feed(data[i:i + 1]) for i in range(len(data))]
    assert done[-1] is True
    assert not any(done[:-1])
    assert len(f.payloads) == 2


def test_records_kept_in_receipt_order():
    first, second = b"1" * 512, b"2" * 512
    f = RecordFramer()
    assert f.feed(MORE_TAG + first) is False
    assert f.feed(TERMINAL_TAG + second) is True
    assert f.payloads == [first, second]
    assert b"".join(f.payloads) == first + second


def test_unknown_tag_is_ordinary_data():
    f = RecordFramer()
    f.feed(b"GARBAGE!" + b"g" * 512)
    assert not f.complete
    assert f.payloads == [b"g" * 512]


def test_bytes_after_terminal_are_discarded():
    data = frame([b"a" * 512]) + MORE_TAG + b"b" * 512
    f = RecordFramer()
    assert f.feed(data) is True
    assert f.payloads == [b"a" * 512]
    assert f.pending == 0
    assert f.feed(MORE_TAG + b"c" * 512) is True
    assert len(f.payloads) == 1


def test_incomplete_stream_keeps_collected_chunks():
    f = RecordFramer()
    f.feed(MORE_TAG + b"a" * 512 + b"partial")
    assert not f.complete
    assert f.payloads == [b"a" * 512]
    assert f.pending == len(b"partial")
    assert RECORD_SIZE == 520
