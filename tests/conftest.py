"""
Shared pytest fixtures for IaC Index tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from iac_index.cache import CacheStore
from iac_index.services.policy_parser import PolicyParser
from iac_index.sources.base import DataSourceConfig


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Small cache driven by a fake clock."""
    return CacheStore(max_entries=3, default_ttl=60.0, clock=clock)


@pytest.fixture
def parser():
    """Parser without memoization."""
    return PolicyParser()


@pytest.fixture
def storage_https_policy():
    """Built-in style policy: storage accounts must use HTTPS."""
    return {
        "id": "/providers/Microsoft.Authorization/policyDefinitions/404c3081-a854-4457-ae30-26a93ef643f9",
        "name": "404c3081-a854-4457-ae30-26a93ef643f9",
        "type": "Microsoft.Authorization/policyDefinitions",
        "properties": {
            "displayName": "Secure transfer to storage accounts should be enabled",
            "policyType": "BuiltIn",
            "mode": "Indexed",
            "description": "Audit requirement of Secure transfer in your storage account.",
            "metadata": {"version": "2.0.0", "category": "Storage"},
            "parameters": {
                "effect": {
                    "type": "String",
                    "metadata": {"displayName": "Effect", "description": "Enable or disable the execution of the policy"},
                    "allowedValues": ["Audit", "Deny", "Disabled"],
                    "defaultValue": "Audit",
                }
            },
            "policyRule": {
                "if": {
                    "allOf": [
                        {"field": "type", "equals": "Microsoft.Storage/storageAccounts"},
                        {
                            "field": "Microsoft.Storage/storageAccounts/supportsHttpsTrafficOnly",
                            "notEquals": True,
                        },
                    ]
                },
                "then": {"effect": "[parameters('effect')]"},
            },
        },
    }


STORAGE_BICEP = """// Creates a storage account with HTTPS only
@description('Storage account name')
param storageAccountName string
param location string = resourceGroup().location

resource sa 'Microsoft.Storage/storageAccounts@2023-01-01' = {
  name: storageAccountName
  location: location
  kind: 'StorageV2'
}

output storageId string = sa.id
"""

VM_ARM_TEMPLATE = {
    "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
    "contentVersion": "1.0.0.0",
    "metadata": {"description": "Simple Linux VM"},
    "parameters": {
        "vmName": {"type": "string", "metadata": {"description": "Name of the VM"}},
        "vmSize": {
            "type": "string",
            "defaultValue": "Standard_B2s",
            "allowedValues": ["Standard_B2s", "Standard_D2s_v5"],
        },
    },
    "resources": [
        {
            "type": "Microsoft.Compute/virtualMachines",
            "apiVersion": "2023-03-01",
            "name": "[parameters('vmName')]",
            "properties": {"hardwareProfile": {}, "osProfile": {}},
        }
    ],
    "outputs": {"vmId": {"type": "string", "metadata": {"description": "VM resource id"}}},
}


@pytest.fixture
def storage_bicep():
    return STORAGE_BICEP


@pytest.fixture
def vm_arm_template():
    return json.loads(json.dumps(VM_ARM_TEMPLATE))


@pytest.fixture
def local_root(tmp_path, storage_https_policy):
    """
    Directory tree laid out like checkouts of the default data sources:

        azure-quickstart-templates/quickstarts/
            storage/storage-account/main.bicep + README.md
            compute/vm-simple-linux/azuredeploy.json + metadata.json + azuredeploy.parameters.json
            broken/broken.json (not JSON)
        azure-policy/built-in-policies/policyDefinitions/
            Storage/secure-transfer.json
            Storage/broken.json (not JSON)
    """
    quickstarts = tmp_path / "azure-quickstart-templates" / "quickstarts"

    storage = quickstarts / "storage" / "storage-account"
    storage.mkdir(parents=True)
    (storage / "main.bicep").write_text(STORAGE_BICEP)
    (storage / "README.md").write_text("# Storage Account With HTTPS\n\nTags: storage, https\n")

    vm = quickstarts / "compute" / "vm-simple-linux"
    vm.mkdir(parents=True)
    (vm / "azuredeploy.json").write_text(json.dumps(VM_ARM_TEMPLATE))
    (vm / "metadata.json").write_text(
        json.dumps({"description": "Deploy a simple Linux VM", "tags": ["linux", "vm"]})
    )
    (vm / "azuredeploy.parameters.json").write_text(json.dumps({"parameters": {}}))

    broken = quickstarts / "broken"
    broken.mkdir(parents=True)
    (broken / "broken.json").write_text("{ not json")

    policies = tmp_path / "azure-policy" / "built-in-policies" / "policyDefinitions" / "Storage"
    policies.mkdir(parents=True)
    (policies / "secure-transfer.json").write_text(json.dumps(storage_https_policy))
    (policies / "broken.json").write_text("not json at all")

    return tmp_path


@pytest.fixture
def template_source_config():
    return DataSourceConfig(
        name="quickstart-templates",
        owner="Azure",
        repo="azure-quickstart-templates",
        branch="master",
        base_path="quickstarts",
    )


@pytest.fixture
def policy_source_config():
    return DataSourceConfig(
        name="azure-policy",
        owner="Azure",
        repo="azure-policy",
        branch="master",
        base_path="built-in-policies/policyDefinitions",
        kind="policies",
    )
