import logging

from matchpoint.utils import sentry


def test_skipped_without_dsn(monkeypatch):
  calls = []
  monkeypatch.setattr(sentry.sentry_sdk, "init", lambda **kw: calls.append(kw))
  assert sentry.init_sentry({}) is False
  assert calls == []


def test_initialises_with_parsed_rates(monkeypatch, caplog):
  calls = []
  monkeypatch.setattr(sentry.sentry_sdk, "init", lambda **kw: calls.append(kw))
  monkeypatch.setattr(sentry.sentry_sdk, "set_tag", lambda *a: None)
  env = {
      "SENTRY_DSN": "https://key@sentry.example/1",
      "SENTRY_ENVIRONMENT": " staging ",
      "SENTRY_TRACES_SAMPLE_RATE": "0.25",
      "SENTRY_PROFILES_SAMPLE_RATE": "lots",
  }

  with caplog.at_level(logging.WARNING):
    assert sentry.init_sentry(env) is True

  (kwargs,) = calls
  assert kwargs["environment"] == "staging"
  assert kwargs["traces_sample_rate"] == 0.25
  assert kwargs["profiles_sample_rate"] == 0.0
  assert "SENTRY_PROFILES_SAMPLE_RATE is not a valid float" in caplog.text
