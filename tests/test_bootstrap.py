"""
Unit tests for the cluster bootstrap
"""

import os
import sys
import unittest
from unittest.mock import Mock, patch

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import (
    AuthConfigMapInput,
    HelmReleaseConfigInput,
    HelmRepositoryInput,
    K8sPlatformConfigInput,
    PlatformApplicationConfig,
)
from modules.errors import ConfigurationError
from modules.kubernetes.bootstrap import argocd_repository_values, bootstrap_cluster


def _stack_config(values=None):
    values = values or {}
    config = Mock()
    config.require.side_effect = lambda key: values[key]
    config.require_secret.side_effect = lambda key: f"secret:{key}"
    return config


class TestBootstrapCluster(unittest.TestCase):
    """Test bootstrap ordering and optional components"""

    def setUp(self):
        self.created = []
        self.patches = {
            "k8s": patch('modules.kubernetes.bootstrap.k8s'),
            "pulumi": patch('modules.kubernetes.bootstrap.pulumi'),
            "auth": patch('modules.kubernetes.bootstrap.sync_auth_config_map'),
            "application": patch('modules.kubernetes.bootstrap.sync_argocd_application'),
        }
        self.mocks = {key: p.start() for key, p in self.patches.items()}

        def record(kind):
            def create(resource_name, *args, **kwargs):
                resource = Mock(name=resource_name)
                self.created.append((kind, resource_name, kwargs))
                return resource
            return create

        self.mocks["k8s"].core.v1.Secret.side_effect = record("secret")
        self.mocks["k8s"].helm.v3.Release.side_effect = record("release")
        self.mocks["auth"].side_effect = lambda auth_config, opts=None: self.created.append(
            ("auth", "aws-auth-configmap", {})
        ) or Mock()
        self.mocks["application"].side_effect = lambda name, application, opts=None: self.created.append(
            ("application", name, {"application": application})
        ) or Mock()
        # resource options are inspected through their keyword arguments
        self.mocks["pulumi"].ResourceOptions.side_effect = lambda **kwargs: kwargs

    def tearDown(self):
        for p in self.patches.values():
            p.stop()

    def _names(self):
        return [name for _, name, _ in self.created]

    def test_minimal_bootstrap(self):
        """Test that only the Helm releases are installed by default"""
        result = bootstrap_cluster(K8sPlatformConfigInput(), PlatformApplicationConfig(), _stack_config(), "dev")

        self.assertEqual(self._names(), ["kube-prometheus-stack", "argo-cd"])
        self.assertIsNone(result["_auth_config_map"])
        self.assertIsNone(result["_platform_application"])
        self.assertIsNone(result["_cert_manager_dns_solver_secret"])

        releases = {name: kwargs for _, name, kwargs in self.created}
        self.assertEqual(releases["argo-cd"]["version"], "5.46.8")
        self.assertEqual(releases["argo-cd"]["namespace"], "argo-cd")
        self.assertEqual(releases["argo-cd"]["values"], {})
        self.assertEqual(releases["kube-prometheus-stack"]["version"], "51.2.0")
        self.mocks["pulumi"].FileAsset.assert_any_call("./helm-values/argo-cd-values.yaml")
        self.mocks["pulumi"].FileAsset.assert_any_call("./helm-values/prometheus-values.yaml")

    def test_full_bootstrap_order(self):
        """Test auth, secrets, releases and the application are created in dependency order"""
        k8s_config = K8sPlatformConfigInput(
            manage_eks_auth_configmap=True,
            manage_prometheus_remote_write_basic_auth_secret=True,
            manage_cert_manager_dns_solver_secret=True,
        )
        platform = PlatformApplicationConfig(enabled=True, target_revision="0.4.0")
        auth_config = AuthConfigMapInput(nodegroup_iam_role="arn:aws:iam::123456789012:role/nodes")

        result = bootstrap_cluster(k8s_config, platform, _stack_config(), "dev", auth_config=auth_config)

        self.assertEqual(self._names(), [
            "aws-auth-configmap",
            "prometheus-remote-write-basic-auth-secret",
            "kube-prometheus-stack",
            "argo-cd",
            "cluster-services",
            "cert-manager-cloudflare-api-token-secret",
        ])
        self.mocks["auth"].assert_called_once()

        created = {name: kwargs for _, name, kwargs in self.created}
        self.assertEqual(created["kube-prometheus-stack"]["opts"]["depends_on"],
                         [result["_prometheus_remote_write_secret"]])
        self.assertEqual(created["argo-cd"]["opts"]["depends_on"], [result["_kube_prometheus_stack"]])
        self.assertEqual(created["cert-manager-cloudflare-api-token-secret"]["opts"]["depends_on"],
                         [result["_platform_application"]])
        self.assertEqual(created["cluster-services"]["application"].spec.source.target_revision, "0.4.0")

    def test_remote_write_secret(self):
        k8s_config = K8sPlatformConfigInput(manage_prometheus_remote_write_basic_auth_secret=True)

        bootstrap_cluster(k8s_config, PlatformApplicationConfig(), _stack_config(), "dev")

        secret = self.created[0][2]
        self.assertEqual(secret["string_data"], {
            "username": "dev",
            "password": "secret:prometheusRemoteWriteBasicAuthPassword",
        })
        self.mocks["k8s"].meta.v1.ObjectMetaArgs.assert_any_call(
            name="prometheus-remote-write-basic-auth",
            namespace="kube-prometheus-stack"
        )

    def test_helm_release_overrides(self):
        k8s_config = K8sPlatformConfigInput(
            argocd_helm=HelmReleaseConfigInput(version="5.50.0", values_files=["custom-argo.yaml"])
        )

        bootstrap_cluster(k8s_config, PlatformApplicationConfig(), _stack_config(), "dev")

        releases = {name: kwargs for _, name, kwargs in self.created}
        self.assertEqual(releases["argo-cd"]["version"], "5.50.0")
        self.mocks["pulumi"].FileAsset.assert_any_call("custom-argo.yaml")

    def test_platform_values_templated(self):
        """Test that secret placeholders in the application values are resolved"""
        platform = PlatformApplicationConfig(enabled=True, values="token: <<apiToken>>\n")
        config = _stack_config({"secretProvider": "pulumi", "apiToken": "t0ken"})

        bootstrap_cluster(K8sPlatformConfigInput(), platform, config, "dev")

        application = self.created[-1][2]["application"]
        self.assertEqual(application.spec.source.helm.values, "token: t0ken\n")

    def test_platform_values_without_placeholders(self):
        """Test that plain values do not require a secret provider"""
        platform = PlatformApplicationConfig(enabled=True, values="replicas: 2\n")

        bootstrap_cluster(K8sPlatformConfigInput(), platform, _stack_config(), "dev")

        application = self.created[-1][2]["application"]
        self.assertEqual(application.spec.source.helm.values, "replicas: 2\n")

    def test_auth_requires_config(self):
        with self.assertRaises(ConfigurationError):
            bootstrap_cluster(
                K8sPlatformConfigInput(manage_eks_auth_configmap=True), PlatformApplicationConfig(),
                _stack_config(), "dev"
            )
        self.assertEqual(self.created, [])

    def test_release_failure_logged(self):
        self.mocks["k8s"].helm.v3.Release.side_effect = RuntimeError("chart not found")

        with self.assertRaises(RuntimeError):
            bootstrap_cluster(K8sPlatformConfigInput(), PlatformApplicationConfig(), _stack_config(), "dev")

        self.mocks["pulumi"].log.error.assert_called_once()


class TestArgocdRepositories(unittest.TestCase):

    def test_no_repositories(self):
        config = _stack_config()
        self.assertEqual(argocd_repository_values(K8sPlatformConfigInput(), config), {})
        config.require_secret.assert_not_called()

    def test_repositories_use_token(self):
        k8s_config = K8sPlatformConfigInput(
            argocd_helm_repositories=[HelmRepositoryInput(name="private", url="https://charts.example.com")]
        )

        values = argocd_repository_values(k8s_config, _stack_config())

        self.assertEqual(values["configs"]["repositories"]["private"], {
            "name": "private",
            "type": "helm",
            "url": "https://charts.example.com",
            "username": "secret:helmRepoPat",
            "password": "secret:helmRepoPat",
        })


if __name__ == '__main__':
    unittest.main()
