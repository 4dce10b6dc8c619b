"""Unit tests for settings helpers."""

from backend.app.core.config import Settings


class TestDeviceAddresses:
    def test_parses_json_mapping(self):
        settings = Settings(printer_ips='{"ums5-1": "10.0.0.21", "ums5-2": "printer2.lan"}')
        assert settings.device_addresses() == {"ums5-1": "10.0.0.21", "ums5-2": "printer2.lan"}

    def test_empty_by_default(self):
        assert Settings(printer_ips="").device_addresses() == {}

    def test_invalid_json_is_empty_and_warns(self, capture_logs):
        assert Settings(printer_ips="{ums5-1: 10.0.0.21").device_addresses() == {}
        assert any("PRINTER_IPS" in r.getMessage() for r in capture_logs.get_warnings())

    def test_non_object_is_empty(self):
        assert Settings(printer_ips='["10.0.0.21"]').device_addresses() == {}

    def test_blank_addresses_dropped(self):
        assert Settings(printer_ips='{"ums5-1": "", "ums5-2": "10.0.0.22"}').device_addresses() == {
            "ums5-2": "10.0.0.22"
        }


class TestFlags:
    def test_cloud_configured_needs_both_credentials(self):
        assert Settings(ultimaker_client_id="id", ultimaker_client_secret="s").cloud_configured is True
        assert Settings(ultimaker_client_id="id", ultimaker_client_secret=None).cloud_configured is False
        assert Settings(ultimaker_client_id=None, ultimaker_client_secret=None).cloud_configured is False

    def test_is_production(self):
        assert Settings(environment="Production").is_production is True
        assert Settings(environment="development").is_production is False
