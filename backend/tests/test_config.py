import pytest

from matchpoint.config import load_settings

SECRET = "x" * 32


def _env(**overrides):
  env = {"DATABASE_URL": "sqlite+aiosqlite:///./matchpoint.db", "JWT_SECRET": SECRET}
  env.update(overrides)
  return env


def test_defaults():
  settings = load_settings(_env())
  assert settings.api_prefix == "/api"
  assert settings.rankings_job_secret is None
  assert settings.elo_policy.k_factor == 32
  assert settings.elo_policy.high_rating_threshold is None
  assert settings.settlement_max_attempts == 3
  assert settings.allowed_origins == ()


@pytest.mark.parametrize(
    "raw,expected",
    [("api/", "/api"), ("/v1/api/", "/v1/api"), ("", "/api"), ("/", "/")],
)
def test_api_prefix_is_canonical(raw, expected):
  assert load_settings(_env(API_PREFIX=raw)).api_prefix == expected


def test_elo_overrides():
  settings = load_settings(
      _env(ELO_K_FACTOR="24", ELO_HIGH_RATING_THRESHOLD="2400", ELO_HIGH_RATING_K_FACTOR="12")
  )
  policy = settings.elo_policy
  assert policy.k_for(2400) == 24
  assert policy.k_for(2500) == 12


@pytest.mark.parametrize(
    "overrides",
    [
        {"DATABASE_URL": ""},
        {"JWT_SECRET": ""},
        {"JWT_SECRET": "short"},
        {"ELO_K_FACTOR": "lots"},
        {"SETTLEMENT_MAX_ATTEMPTS": "0"},
        {"SETTLEMENT_RETRY_BACKOFF": "-1"},
        {"ALLOWED_ORIGINS": "https://club.example,*"},
    ],
)
def test_rejects_bad_values(overrides):
  with pytest.raises(RuntimeError):
    load_settings(_env(**overrides))


def test_origins_and_job_secret():
  settings = load_settings(
      _env(
          ALLOWED_ORIGINS="https://club.example, https://admin.club.example",
          ALLOW_CREDENTIALS="false",
          RANKINGS_JOB_SECRET="  cron-secret ",
      )
  )
  assert settings.allowed_origins == ("https://club.example", "https://admin.club.example")
  assert settings.allow_credentials is False
  assert settings.rankings_job_secret == "cron-secret"
