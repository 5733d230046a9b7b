"""Tests for the control plane client builder."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from servicemesh_operator.builders.client import create_mesh_client_from_env


class TestCreateMeshClientFromEnv:
    """Test cases for create_mesh_client_from_env function."""

    def test_missing_endpoint(self):
        """Test the endpoint is required."""
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError, match="MESH_API_ENDPOINT is required"):
                create_mesh_client_from_env()

    def test_token_from_env(self):
        env = {"MESH_API_ENDPOINT": "https://mesh.example.com/", "MESH_API_TOKEN": "env-token"}
        with patch.dict("os.environ", env, clear=True):
            mesh_client = create_mesh_client_from_env()

        assert mesh_client.endpoint == "https://mesh.example.com"
        assert mesh_client.http.headers["Authorization"] == "Bearer env-token"
        assert mesh_client.http.base_url.path == "/20220615/"

    @patch("servicemesh_operator.builders.client.client.CoreV1Api")
    @patch("servicemesh_operator.builders.client.get_secret_value")
    @patch("servicemesh_operator.builders.client.config.load_incluster_config")
    def test_token_from_secret(self, mock_load_config, mock_get_secret, mock_core_api):
        """Test the credentials Secret takes precedence over the environment token."""
        mock_api = Mock()
        mock_core_api.return_value = mock_api
        mock_get_secret.return_value = "secret-token"
        env = {
            "MESH_API_ENDPOINT": "https://mesh.example.com",
            "MESH_API_TOKEN": "env-token",
            "MESH_API_CREDENTIALS_SECRET": "mesh-creds",
            "MESH_API_CREDENTIALS_NAMESPACE": "mesh-system",
        }
        with patch.dict("os.environ", env, clear=True):
            mesh_client = create_mesh_client_from_env()

        mock_load_config.assert_called_once()
        mock_get_secret.assert_called_once_with(mock_api, "mesh-system", "mesh-creds", "token")
        assert mesh_client.http.headers["Authorization"] == "Bearer secret-token"

    @patch("servicemesh_operator.builders.client.MeshApiClient")
    def test_timeout_and_verify(self, mock_client_cls):
        env = {
            "MESH_API_ENDPOINT": "https://mesh.example.com",
            "MESH_API_TIMEOUT_SECONDS": "10",
            "MESH_API_INSECURE_SKIP_VERIFY": "true",
        }
        with patch.dict("os.environ", env, clear=True):
            create_mesh_client_from_env()

        mock_client_cls.assert_called_once_with(
            endpoint="https://mesh.example.com",
            token=None,
            timeout=10.0,
            verify=False,
        )
