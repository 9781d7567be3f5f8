from packages.billing.webhooks.signature import (
    compute_signature,
    parse_signature_header,
    verify_signature,
)

SECRET = "pdl_ntfset_sig"
BODY = b'{"event_type":"transaction.completed"}'


def header_for(body: bytes, secret: str = SECRET, ts: str = "1760000000") -> str:
    return f"ts={ts};h1={compute_signature(secret, ts, body)}"


class TestSignature:
    def test_parse_header(self):
        ts, digests = parse_signature_header("ts=1760000000; h1=abc;h1=def;bogus")
        assert ts == "1760000000"
        assert digests == ["abc", "def"]

    def test_parse_empty_header(self):
        assert parse_signature_header(None) == (None, [])

    def test_valid_signature(self):
        assert verify_signature(header_for(BODY), BODY, SECRET)

    def test_tampered_body_rejected(self):
        header = header_for(BODY)
        assert not verify_signature(header, BODY.replace(b"completed", b"refunded"), SECRET)

    def test_wrong_secret_rejected(self):
        assert not verify_signature(header_for(BODY, secret="other"), BODY, SECRET)

    def test_rotated_secret_any_digest_matches(self):
        ts = "1760000000"
        header = (
            f"ts={ts};h1={compute_signature('old', ts, BODY)};"
            f"h1={compute_signature(SECRET, ts, BODY)}"
        )
        assert verify_signature(header, BODY, SECRET)

    def test_missing_parts_rejected(self):
        assert not verify_signature("h1=abc", BODY, SECRET)
        assert not verify_signature("ts=1760000000", BODY, SECRET)
        assert not verify_signature(None, BODY, SECRET)

    def test_unconfigured_secret_rejects_everything(self):
        assert not verify_signature(header_for(BODY, secret=""), BODY, "")

    def test_timestamp_within_tolerance_accepted(self):
        assert verify_signature(
            header_for(BODY), BODY, SECRET, tolerance_seconds=300, now=1760000120
        )

    def test_stale_timestamp_rejected(self):
        assert not verify_signature(
            header_for(BODY), BODY, SECRET, tolerance_seconds=300, now=1760000301
        )

    def test_future_timestamp_rejected(self):
        assert not verify_signature(
            header_for(BODY), BODY, SECRET, tolerance_seconds=300, now=1759999000
        )

    def test_non_numeric_timestamp_rejected_with_tolerance(self):
        assert not verify_signature(
            header_for(BODY, ts="yesterday"), BODY, SECRET, tolerance_seconds=300
        )
