"""
Unit tests for the Argo CD Application manifest mirror
"""

import os
import sys
import unittest
from unittest.mock import patch

import yaml

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from modules.kubernetes.argocd import (
    ArgocdApplication,
    SyncPolicy,
    SyncPolicyAutomated,
    load_application_template,
    materialize_application,
    sync_argocd_application,
)

TEMPLATE = """apiVersion: argoproj.io/v1alpha1
kind: Application
metadata:
  name: platform-services
  namespace: argo-cd
spec:
  project: default
  source:
    repoURL: https://charts.example.com
    chart: platform-services
    targetRevision: 1.0.0
    helm:
      releaseName: platform-services
      values: |
        replicas: 1
  destination:
    server: https://kubernetes.default.svc
    namespace: platform-services
  syncPolicy:
    automated:
      prune: true
"""


class TestArgocdApplication(unittest.TestCase):
    """Test loading and writing Applications"""

    def test_load(self):
        application = ArgocdApplication.from_yaml(TEMPLATE)

        self.assertEqual(application.metadata["name"], "platform-services")
        self.assertEqual(application.spec.source.repo_url, "https://charts.example.com")
        self.assertEqual(application.spec.source.helm.release_name, "platform-services")
        self.assertTrue(application.spec.sync_policy.automated.prune)
        self.assertFalse(application.spec.sync_policy.automated.self_heal)

    def test_empty_fields_omitted(self):
        """Test that unset optional fields are left out of the output"""
        output = yaml.safe_load(ArgocdApplication.from_yaml(TEMPLATE).to_yaml())

        source = output["spec"]["source"]
        self.assertNotIn("path", source)
        self.assertNotIn("kustomize", source)
        self.assertNotIn("directory", source)
        self.assertNotIn("plugin", source)
        self.assertNotIn("ignoreDifferences", output["spec"])
        self.assertEqual(output["spec"]["syncPolicy"], {"automated": {"prune": True}})
        self.assertEqual(source["repoURL"], "https://charts.example.com")
        self.assertEqual(source["targetRevision"], "1.0.0")

    def test_required_fields_kept(self):
        output = ArgocdApplication().to_dict()

        self.assertEqual(output["apiVersion"], "argoproj.io/v1alpha1")
        self.assertEqual(output["kind"], "Application")
        self.assertEqual(output["metadata"], {})
        self.assertEqual(output["spec"]["project"], "")
        self.assertEqual(output["spec"]["source"], {"repoURL": ""})

    def test_invalid_yaml(self):
        with patch('modules.kubernetes.argocd.pulumi') as mock_pulumi:
            with self.assertRaises(yaml.YAMLError):
                ArgocdApplication.from_yaml("spec: [unclosed")
            mock_pulumi.log.error.assert_called_once()


class TestMaterializeApplication(unittest.TestCase):
    """Test stack overrides on Application templates"""

    def test_overrides(self):
        application = materialize_application(
            TEMPLATE,
            sync_policy={"automated": {"prune": True, "selfHeal": True}, "syncOptions": ["CreateNamespace=true"]},
            target_revision="2.0.0",
            values="replicas: 3\n"
        )

        self.assertEqual(application.spec.source.target_revision, "2.0.0")
        self.assertEqual(application.spec.source.helm.values, "replicas: 3\n")
        self.assertTrue(application.spec.sync_policy.automated.self_heal)
        self.assertEqual(application.spec.sync_policy.sync_options, ["CreateNamespace=true"])

    def test_sync_policy_object(self):
        sync_policy = SyncPolicy(automated=SyncPolicyAutomated(self_heal=True))

        application = materialize_application(TEMPLATE, sync_policy=sync_policy)

        self.assertIs(application.spec.sync_policy, sync_policy)

    def test_empty_overrides_keep_template(self):
        """Test that empty values never clear what the template sets"""
        for values in (None, ""):
            application = materialize_application(TEMPLATE, sync_policy={}, target_revision="", values=values)

            self.assertEqual(application.spec.source.helm.values, "replicas: 1\n")
            self.assertEqual(application.spec.source.target_revision, "1.0.0")
            self.assertTrue(application.spec.sync_policy.automated.prune)

    def test_packaged_template(self):
        application = materialize_application(load_application_template(), target_revision="0.3.1")

        self.assertEqual(application.kind, "Application")
        self.assertEqual(application.spec.source.chart, "platform-services")
        self.assertEqual(application.spec.source.target_revision, "0.3.1")
        self.assertEqual(application.spec.sync_policy.retry.limit, 5)
        self.assertEqual(application.spec.sync_policy.retry.backoff.max_duration, "3m")

    def test_sync_writes_manifest(self):
        application = materialize_application(TEMPLATE, values="replicas: 2\n")

        with patch('modules.kubernetes.argocd.sync_kubernetes_manifest') as mock_sync:
            sync_argocd_application("cluster-services", application)

            name, manifest = mock_sync.call_args.args
            self.assertEqual(name, "cluster-services")
            self.assertEqual(yaml.safe_load(manifest)["spec"]["source"]["helm"]["values"], "replicas: 2\n")


if __name__ == '__main__':
    unittest.main()
