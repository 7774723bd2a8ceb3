"""
Audiomosh Proxy — Settings and URL Helper Tests
================================================

What we test:
    ✅ Settings validation (log level, base URLs, ranges)
    ✅ ENVIRONMENT unset → production (no stack traces in 500 bodies)
    ✅ PEXELS_DOWNLOAD_HOSTS parsing
    ✅ Freesound URL building ("?" vs "&" join)
    ✅ Pexels download allow-list, including subdomains and look-alike hosts
"""

import pydantic
import pytest

from media_proxy.config import Settings
from media_proxy.exceptions import ValidationError
from media_proxy.routes import freesound, pexels


def settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestSettings:

    def test_defaults(self):
        config = settings(freesound_api_key="", pexels_api_key="")
        assert config.port == 3001
        assert config.cache_ttl == 300
        assert config.rate_limit_requests == 100
        assert config.rate_limit_window == 60

    def test_environment_defaults_to_production(self, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        config = settings()
        assert config.environment == "production"
        assert not config.is_development

    def test_log_level_is_normalized(self):
        assert settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            settings(log_level="verbose")

    def test_base_url_trailing_slash_dropped(self):
        assert settings(freesound_base_url="https://freesound.org/").freesound_base_url == (
            "https://freesound.org"
        )

    def test_base_url_must_be_absolute(self):
        with pytest.raises(pydantic.ValidationError):
            settings(pexels_base_url="api.pexels.com")

    def test_port_range(self):
        with pytest.raises(pydantic.ValidationError):
            settings(port=70000)

    def test_download_hosts_list(self):
        config = settings(pexels_download_hosts=" Videos.Pexels.com, ,player.vimeo.com ")
        assert config.pexels_download_hosts_list == ["videos.pexels.com", "player.vimeo.com"]

    def test_missing_keys_reported_together(self):
        config = settings(freesound_api_key="", pexels_api_key="")
        with pytest.raises(ValueError) as exc_info:
            config.validate_required_for_production()
        assert "FREESOUND_API_KEY" in str(exc_info.value)
        assert "PEXELS_API_KEY" in str(exc_info.value)

    def test_development_flag(self):
        assert settings(environment="Development").is_development
        assert not settings(environment="production").is_development


class TestFreesoundUrls:

    def test_no_extra_params(self):
        assert freesound.build_search_url("https://freesound.org", "sounds/1/", []) == (
            "https://freesound.org/apiv2/sounds/1/"
        )

    def test_joins_with_ampersand_when_url_has_query(self):
        url = freesound.build_search_url(
            "https://freesound.org", "search/text/?query=drum", [("page", "2"), ("page_size", "15")]
        )
        assert url == "https://freesound.org/apiv2/search/text/?query=drum&page=2&page_size=15"

    def test_joins_with_question_mark_otherwise(self):
        url = freesound.build_search_url("https://freesound.org", "search/text/", [("query", "snare")])
        assert url == "https://freesound.org/apiv2/search/text/?query=snare"

    def test_download_url(self):
        assert freesound.build_download_url("https://freesound.org", "1234") == (
            "https://freesound.org/apiv2/sounds/1234/download/"
        )


class TestPexelsDownloadTarget:

    HOSTS = ["videos.pexels.com", "player.vimeo.com"]

    @pytest.mark.parametrize(
        "url",
        [
            "https://videos.pexels.com/video-files/1/1.mp4",
            "http://player.vimeo.com/external/1.hd.mp4",
            "https://cdn.videos.pexels.com/a.mp4",
            "https://VIDEOS.PEXELS.COM/a.mp4",
        ],
    )
    def test_allowed(self, url):
        assert pexels.validate_download_target(url, self.HOSTS) == url

    @pytest.mark.parametrize(
        "url",
        [
            "https://evilvideos.pexels.com/a.mp4",
            "https://videos.pexels.com.attacker.io/a.mp4",
            "http://127.0.0.1:8080/admin",
            "file:///etc/passwd",
            "ftp://videos.pexels.com/a.mp4",
            "videos.pexels.com/a.mp4",
        ],
    )
    def test_rejected(self, url):
        with pytest.raises(ValidationError):
            pexels.validate_download_target(url, self.HOSTS)

    def test_wildcard(self):
        url = "https://example.org/clip.mp4"
        assert pexels.validate_download_target(url, ["*"]) == url

    def test_wildcard_still_requires_http(self):
        with pytest.raises(ValidationError):
            pexels.validate_download_target("file:///etc/passwd", ["*"])

    def test_search_url(self):
        assert pexels.build_search_url("https://api.pexels.com", "popular?per_page=5") == (
            "https://api.pexels.com/videos/popular?per_page=5"
        )
