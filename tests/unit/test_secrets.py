"""Tests for Kubernetes secrets utilities."""

from __future__ import annotations

import base64
from unittest.mock import Mock

import pytest
from kubernetes import client

from servicemesh_operator.utils.secrets import get_secret_value


class TestGetSecretValue:
    """Test cases for get_secret_value function."""

    def test_get_secret_value_success(self):
        """Test successfully getting a secret value."""
        mock_api = Mock()
        mock_secret = Mock()
        encoded_value = base64.b64encode(b"test-value").decode("utf-8")
        mock_secret.data = {"token": encoded_value}
        mock_api.read_namespaced_secret.return_value = mock_secret

        result = get_secret_value(mock_api, "default", "mesh-creds", "token")

        assert result == "test-value"
        mock_api.read_namespaced_secret.assert_called_once_with(name="mesh-creds", namespace="default")

    def test_get_secret_value_bytes(self):
        """Test getting secret value that's already bytes."""
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {"token": b"test-value"}
        mock_api.read_namespaced_secret.return_value = mock_secret

        assert get_secret_value(mock_api, "default", "mesh-creds", "token") == "test-value"

    def test_get_secret_value_plain_string(self):
        """Test a value that is not base64 is returned as is."""
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {"token": "not base64!"}
        mock_api.read_namespaced_secret.return_value = mock_secret

        assert get_secret_value(mock_api, "default", "mesh-creds", "token") == "not base64!"

    def test_get_secret_value_key_not_found(self):
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {"other-key": "value"}
        mock_api.read_namespaced_secret.return_value = mock_secret

        with pytest.raises(ValueError, match="Key 'token' not found"):
            get_secret_value(mock_api, "default", "mesh-creds", "token")

    def test_get_secret_value_empty_data(self):
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = None
        mock_api.read_namespaced_secret.return_value = mock_secret

        with pytest.raises(ValueError, match="not found in secret 'mesh-creds'"):
            get_secret_value(mock_api, "default", "mesh-creds", "token")

    def test_get_secret_value_secret_not_found(self):
        """Test error when the secret does not exist."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(ValueError, match="Secret 'mesh-creds' not found in namespace 'default'"):
            get_secret_value(mock_api, "default", "mesh-creds", "token")

    def test_get_secret_value_api_error(self):
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=403)

        with pytest.raises(client.exceptions.ApiException):
            get_secret_value(mock_api, "default", "mesh-creds", "token")
