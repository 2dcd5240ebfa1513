"""airnode-deployer test suite."""
