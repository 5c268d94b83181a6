"""
Unit tests for py2blitz models.

Covers strike records, connection status and stream settings.
"""

import json
import os
import tempfile
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock

from py2blitz.core import envelope as envelopes
from py2blitz.core.envelope import Envelope, MessageKind
from py2blitz.core.errors import ConfigurationError, ErrorCodes, StrikeParseError
from py2blitz.models.connection import (
    ConnectionModel,
    ConnectionState,
    ConnectionStatus,
    status_from_envelope,
)
from py2blitz.models.settings import (
    BLITZ_HANDSHAKE,
    BLITZ_SERVERS,
    StreamSettings,
    load_settings,
    settings_from_dict,
)
from py2blitz.models.strike import Signal, Strike


def make_strike_dict(**overrides):
    """Strike JSON object as the server sends it."""
    data = {
        "time": 1718000000123456,
        "lat": 48.12345,
        "lon": 11.56789,
        "alt": 0,
        "pol": -1,
        "mds": 9420,
        "mcg": 218,
        "status": 2,
        "region": 1,
        "sig": [
            {"sta": 1724, "time": 1234567, "lat": 47.9, "lon": 11.1, "alt": 520, "status": 4},
            {"sta": 2001, "time": 9876543, "lat": 48.3, "lon": 12.0, "alt": -3, "status": 0},
        ],
        "delay": 3.2,
        "lonc": 1,
        "latc": 2,
    }
    data.update(overrides)
    return data


class TestStrikeParsing(unittest.TestCase):
    """Test building strikes from decoded JSON."""

    def test_parse_complete_strike(self):
        """Test parsing a strike with every field."""
        strike = Strike.from_json(json.dumps(make_strike_dict()))

        self.assertEqual(strike.time, 1718000000123456)
        self.assertAlmostEqual(strike.lat, 48.12345)
        self.assertEqual(strike.polarity, -1)
        self.assertEqual(strike.mds, 9420)
        self.assertEqual((strike.lonc, strike.latc), (1, 2))
        self.assertEqual(strike.delay, 3.2)
        self.assertEqual(len(strike.signals), 2)
        self.assertEqual(strike.signals[0].station, 1724)
        self.assertEqual(strike.signals[1].alt, -3)

    def test_integer_altitude_becomes_float(self):
        """Test that an integer altitude is stored as a float."""
        strike = Strike.from_dict(make_strike_dict(alt=120))
        self.assertIsInstance(strike.alt, float)

    def test_delay_is_optional(self):
        """Test that a missing delay is allowed."""
        data = make_strike_dict()
        del data['delay']
        self.assertIsNone(Strike.from_dict(data).delay)

    def test_null_delay_is_none(self):
        """Test that a null delay becomes None."""
        self.assertIsNone(Strike.from_dict(make_strike_dict(delay=None)).delay)

    def test_unknown_fields_ignored(self):
        """Test that unrecognized fields are ignored."""
        strike = Strike.from_dict(make_strike_dict(extra="x"))
        self.assertEqual(strike.region, 1)

    def test_signal_order_preserved(self):
        """Test that signals keep their server order."""
        strike = Strike.from_dict(make_strike_dict())
        self.assertEqual([s.station for s in strike.signals], [1724, 2001])

    def test_missing_required_field(self):
        """Test that a missing required field is named in the error."""
        for key in ('time', 'lat', 'pol', 'mds', 'sig', 'lonc', 'latc'):
            data = make_strike_dict()
            del data[key]
            with self.subTest(key=key):
                with self.assertRaises(StrikeParseError) as ctx:
                    Strike.from_dict(data)
                self.assertEqual(ctx.exception.context['field'], key)

    def test_wrong_types_rejected(self):
        """Test that mistyped fields are rejected."""
        bad = [
            {'time': 1.5},
            {'time': -1},
            {'mds': True},
            {'lat': "48.1"},
            {'status': 2 ** 32},
            {'sig': {}},
            {'sig': [1, 2]},
            {'delay': "soon"},
        ]
        for override in bad:
            with self.subTest(override=override):
                with self.assertRaises(StrikeParseError):
                    Strike.from_dict(make_strike_dict(**override))

    def test_bad_signal_field_rejected(self):
        """Test that a malformed signal is rejected."""
        data = make_strike_dict()
        data['sig'][0]['alt'] = 1.5
        with self.assertRaises(StrikeParseError):
            Strike.from_dict(data)

    def test_invalid_json_rejected(self):
        """Test that text that is not JSON is rejected."""
        with self.assertRaises(StrikeParseError) as ctx:
            Strike.from_json('{"time": 1')
        self.assertEqual(ctx.exception.error_code, ErrorCodes.INVALID_JSON)

    def test_non_object_rejected(self):
        """Test that JSON other than an object is rejected."""
        with self.assertRaises(StrikeParseError):
            Strike.from_json('[1, 2, 3]')

    def test_to_dict_uses_server_names(self):
        """Test that to_dict uses the server field names."""
        data = make_strike_dict()
        self.assertEqual(Strike.from_dict(data).to_dict(), data)


class TestStrikePresentation(unittest.TestCase):
    """Test derived strike values."""

    def test_occurred_at_is_utc(self):
        """Test that the strike time is a UTC datetime."""
        strike = Strike.from_dict(make_strike_dict(time=1718000000123456))
        expected = datetime(2024, 6, 10, 6, 13, 20, 123456, tzinfo=timezone.utc)
        self.assertEqual(strike.occurred_at, expected)

    def test_summary_format(self):
        """Test the one-line strike summary."""
        strike = Strike.from_dict(
            make_strike_dict(time=1718000000123456, lat=48.12346, alt=12.4)
        )
        self.assertEqual(
            strike.summary(),
            "06:13:20 - Lat: 48.1235°, Lon: 11.5679°, Alt: 12m"
        )

    def test_summary_with_out_of_range_time(self):
        """Test that an out-of-range time falls back to the raw value."""
        strike = Strike.from_dict(make_strike_dict(time=2 ** 64 - 1))
        self.assertTrue(strike.summary().startswith(f"Time: {2 ** 64 - 1} - Lat:"))

    def test_signal_offset_has_nine_digits(self):
        """Test that signal offsets are printed with nine decimals."""
        signal = Signal(station=1, time=1234567, lat=0.0, lon=0.0, alt=0, status=0)
        self.assertEqual(signal.offset_text, "0.001234567")


class TestConnectionStatus(unittest.TestCase):
    """Test interpreting worker status envelopes."""

    def test_connected(self):
        """Test interpreting a connected status."""
        status = status_from_envelope(envelopes.connection_status("connected", url="wss://a"))
        self.assertEqual(status.state, ConnectionState.CONNECTED)
        self.assertEqual(status.url, "wss://a")
        self.assertIsNotNone(status.connected_at)
        self.assertIsNone(status.last_error)

    def test_failed(self):
        """Test interpreting a failed status."""
        status = status_from_envelope(
            envelopes.connection_status("failed", url="wss://a", error="refused")
        )
        self.assertEqual(status.state, ConnectionState.ERROR)
        self.assertEqual(status.last_error, "refused")
        self.assertIsNone(status.connected_at)

    def test_disconnected(self):
        """Test interpreting a disconnected status."""
        status = status_from_envelope(envelopes.connection_status("disconnected"))
        self.assertEqual(status.state, ConnectionState.DISCONNECTED)

    def test_wrong_kind_rejected(self):
        """Test that other envelope kinds are rejected."""
        with self.assertRaises(ValueError):
            status_from_envelope(envelopes.raw_text("connected"))

    def test_unknown_status_rejected(self):
        """Test that an unknown status string is rejected."""
        env = Envelope(MessageKind.CONNECTION_STATUS, b'{"status": "sleeping"}')
        with self.assertRaises(ValueError):
            status_from_envelope(env)

    def test_non_json_rejected(self):
        """Test that a payload that is not JSON is rejected."""
        env = Envelope(MessageKind.CONNECTION_STATUS, b'connected')
        with self.assertRaises(ValueError):
            status_from_envelope(env)

    def test_non_string_status_rejected(self):
        """Test that a status field holding a list or object is rejected."""
        for payload in (b'{"status": []}', b'{"status": {"a": 1}}', b'["connected"]'):
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    status_from_envelope(Envelope(MessageKind.CONNECTION_STATUS, payload))

    def test_deeply_nested_status_rejected(self):
        """Test that a status payload nested past the parser limit is rejected."""
        env = Envelope(MessageKind.CONNECTION_STATUS, b"[" * 200000)
        with self.assertRaises(ValueError):
            status_from_envelope(env)

    def test_out_of_range_timestamp_still_connected(self):
        """Test that a timestamp beyond the datetime range falls back to now."""
        env = Envelope(MessageKind.CONNECTION_STATUS, b'{"status": "connected"}', 1e20)
        status = status_from_envelope(env)
        self.assertEqual(status.state, ConnectionState.CONNECTED)
        self.assertIsInstance(status.connected_at, datetime)

    def test_non_string_url_dropped(self):
        """Test that a url that is not a string is reported as unknown."""
        env = Envelope(MessageKind.CONNECTION_STATUS, b'{"status": "disconnected", "url": 5}')
        self.assertIsNone(status_from_envelope(env).url)


class TestConnectionModel(unittest.TestCase):
    """Test the observable connection model."""

    def test_starts_disconnected(self):
        """Test that a new model is disconnected."""
        self.assertEqual(ConnectionModel().status.state, ConnectionState.DISCONNECTED)

    def test_observers_notified(self):
        """Test that an observer is notified once per change."""
        model = ConnectionModel()
        observer = Mock()
        model.add_observer(observer)
        model.add_observer(observer)

        status = ConnectionStatus(state=ConnectionState.CONNECTING)
        model.status = status

        observer.assert_called_once_with(status)

    def test_removed_observer_not_notified(self):
        """Test that a removed observer is not called."""
        model = ConnectionModel()
        observer = Mock()
        model.add_observer(observer)
        model.remove_observer(observer)
        model.status = ConnectionStatus(state=ConnectionState.CONNECTED)
        observer.assert_not_called()

    def test_failing_observer_does_not_block_others(self):
        """Test that a failing observer does not stop the rest."""
        model = ConnectionModel()
        good = Mock()
        model.add_observer(Mock(side_effect=RuntimeError("boom")))
        model.add_observer(good)
        model.status = ConnectionStatus(state=ConnectionState.CONNECTED)
        good.assert_called_once()


class TestStreamSettings(unittest.TestCase):
    """Test stream settings defaults, validation and loading."""

    def test_defaults(self):
        """Test the default settings."""
        settings = StreamSettings()
        self.assertEqual(settings.servers, BLITZ_SERVERS)
        self.assertEqual(settings.url, "wss://ws1.blitzortung.org")
        self.assertEqual(settings.handshake, b'{"a":111}')
        self.assertEqual(len(BLITZ_HANDSHAKE), 9)
        self.assertEqual(settings.max_strikes, 100)
        self.assertIsNone(settings.max_dictionary_size)
        self.assertTrue(settings.validate()[0])

    def test_server_index_selects_url(self):
        """Test that server_index selects the URL."""
        self.assertEqual(StreamSettings(server_index=2).url, "wss://ws8.blitzortung.org")

    def test_validation_errors(self):
        """Test that every invalid field is reported."""
        settings = StreamSettings(
            servers=("http://bad",), server_index=3, receive_timeout=0,
            max_strikes=0, max_dictionary_size=0, ping_interval=-1
        )
        valid, errors = settings.validate()
        self.assertFalse(valid)
        self.assertEqual(len(errors), 6)

    def test_non_integer_counts_rejected(self):
        """Test that float or bool values for integer settings are invalid."""
        for overrides in ({'max_strikes': 2.5}, {'server_index': 1.0},
                          {'max_dictionary_size': 4.0}, {'max_strikes': True}):
            with self.subTest(overrides=overrides):
                valid, errors = StreamSettings(**overrides).validate()
                self.assertFalse(valid)
                self.assertEqual(len(errors), 1)

    def test_handshake_must_be_bytes(self):
        """Test that a text or empty handshake is invalid."""
        for handshake in ('{"a":111}', b'', 111):
            with self.subTest(handshake=handshake):
                valid, errors = StreamSettings(handshake=handshake).validate()
                self.assertFalse(valid)
                self.assertEqual(len(errors), 1)

    def test_from_dict_rejects_non_integer_counts(self):
        """Test that a fractional max_strikes from a file is a configuration error."""
        with self.assertRaises(ConfigurationError) as ctx:
            settings_from_dict({'max_strikes': 2.5})
        self.assertEqual(ctx.exception.error_code, ErrorCodes.CONFIG_INVALID)

    def test_from_dict_rejects_non_text_handshake(self):
        """Test that a list handshake from a file is a configuration error."""
        with self.assertRaises(ConfigurationError):
            settings_from_dict({'handshake': [1, 2]})

    def test_with_overrides_ignores_none(self):
        """Test that None overrides leave fields unchanged."""
        settings = StreamSettings().with_overrides(server_index=1, max_strikes=None)
        self.assertEqual(settings.server_index, 1)
        self.assertEqual(settings.max_strikes, 100)

    def test_with_overrides_validates(self):
        """Test that overrides are validated."""
        with self.assertRaises(ConfigurationError):
            StreamSettings().with_overrides(server_index=10)

    def test_from_dict_converts_lists_and_strings(self):
        """Test that YAML lists and strings are converted."""
        settings = settings_from_dict({
            'servers': ['ws://127.0.0.1:1'],
            'handshake': '{"a":111}',
        })
        self.assertEqual(settings.servers, ('ws://127.0.0.1:1',))
        self.assertEqual(settings.handshake, BLITZ_HANDSHAKE)

    def test_from_dict_rejects_unknown_keys(self):
        """Test that unknown keys are rejected."""
        with self.assertRaises(ConfigurationError) as ctx:
            settings_from_dict({'colour': 'blue'})
        self.assertEqual(ctx.exception.error_code, ErrorCodes.UNKNOWN_SETTING)

    def test_from_dict_rejects_bad_types(self):
        """Test that mistyped values are rejected."""
        with self.assertRaises(ConfigurationError):
            settings_from_dict({'receive_timeout': 'fast'})

    def test_load_settings_none_returns_defaults(self):
        """Test that no path gives the defaults."""
        self.assertEqual(load_settings(None), StreamSettings())

    def test_load_settings_from_yaml(self):
        """Test loading settings from a YAML file."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'blitz.yaml')
            with open(path, 'w', encoding='utf-8') as f:
                f.write("server_index: 1\nreceive_timeout: 0.25\nmax_strikes: 5\n")

            settings = load_settings(path)

        self.assertEqual(settings.server_index, 1)
        self.assertEqual(settings.receive_timeout, 0.25)
        self.assertEqual(settings.max_strikes, 5)

    def test_load_settings_empty_file(self):
        """Test that an empty file gives the defaults."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'empty.yaml')
            open(path, 'w').close()
            self.assertEqual(load_settings(path), StreamSettings())

    def test_load_settings_missing_file(self):
        """Test that a missing file is a configuration error."""
        with self.assertRaises(ConfigurationError) as ctx:
            load_settings('/nonexistent/blitz.yaml')
        self.assertEqual(ctx.exception.error_code, ErrorCodes.CONFIG_NOT_FOUND)

    def test_load_settings_rejects_non_mapping(self):
        """Test that a YAML list is rejected."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'list.yaml')
            with open(path, 'w', encoding='utf-8') as f:
                f.write("- 1\n- 2\n")
            with self.assertRaises(ConfigurationError):
                load_settings(path)

    def test_load_settings_rejects_invalid_yaml(self):
        """Test that malformed YAML is rejected."""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'bad.yaml')
            with open(path, 'w', encoding='utf-8') as f:
                f.write("server_index: [1\n")
            with self.assertRaises(ConfigurationError):
                load_settings(path)


if __name__ == '__main__':
    unittest.main()
