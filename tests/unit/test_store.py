"""Unit tests for the deployment record store."""

import json
import threading
from pathlib import Path

import pytest

from contract_deployments.exceptions import DefectiveRecordError
from contract_deployments.store import DeploymentStore, load_record_file, record_to_dict
from contract_deployments.types import DeploymentRecord


def _record(network: str = "sepolia", address: str = "0xaaaa", args=(1000000,), block: int = 1):
    return DeploymentRecord(
        contract_name="TokenContract",
        address=address,
        constructor_args=tuple(args),
        tx_hash=f"0x{block:064x}",
        confirmed_block=block,
        network=network,
        artifact_name="OurToken",
        deployer="0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
    )


class TestLoadRecordFile:
    """Test the load_record_file function."""

    def test_parses_sample_file_with_history(self, fixtures_dir: Path):
        """Test reading a hardhat-deploy style file with one superseded record."""
        records = load_record_file(fixtures_dir / "deployments" / "sepolia" / "TokenContract.json")

        assert len(records) == 2
        previous, current = records
        assert previous.address == "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
        assert previous.constructor_args == (1000000,)
        assert current.address == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
        assert current.confirmed_block == 4567890
        assert current.constructor_args == (50 * 10**18,)
        assert current.network == "sepolia"
        assert current.contract_name == "TokenContract"
        assert current.artifact_name == "OurToken"
        assert current.deployer == "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

    def test_falls_back_to_top_level_block_number(self, tmp_path: Path):
        """Test that blockNumber outside the receipt is accepted."""
        path = tmp_path / "mainnet" / "Token.json"
        path.parent.mkdir()
        path.write_text(json.dumps({"address": "0xabc", "blockNumber": 12345, "args": []}))

        (record,) = load_record_file(path)

        assert record.confirmed_block == 12345
        assert record.network == "mainnet"

    def test_missing_block_number_raises(self, tmp_path: Path):
        """Test that a file without block number is defective."""
        path = tmp_path / "mainnet" / "Token.json"
        path.parent.mkdir()
        path.write_text(json.dumps({"address": "0xabc"}))

        with pytest.raises(DefectiveRecordError):
            load_record_file(path)

    def test_missing_address_raises(self, tmp_path: Path):
        """Test that a file without address is defective."""
        path = tmp_path / "mainnet" / "Token.json"
        path.parent.mkdir()
        path.write_text(json.dumps({"receipt": {"blockNumber": 1}}))

        with pytest.raises(DefectiveRecordError):
            load_record_file(path)

    def test_corrupted_file_raises(self, tmp_path: Path):
        """Test that invalid JSON is reported as defective."""
        path = tmp_path / "mainnet" / "Token.json"
        path.parent.mkdir()
        path.write_text("{ invalid json")

        with pytest.raises(DefectiveRecordError):
            load_record_file(path)

    @pytest.mark.parametrize(
        "content",
        [
            [{"address": "0xabc", "receipt": {"blockNumber": 1}}],
            "0xabc",
            {"address": "0xabc", "receipt": {"blockNumber": 1}, "history": "none"},
            {"address": "0xabc", "receipt": {"blockNumber": 1}, "history": [42]},
        ],
    )
    def test_non_object_content_raises(self, tmp_path: Path, content):
        """Test that valid JSON of the wrong shape is reported as defective."""
        path = tmp_path / "mainnet" / "Token.json"
        path.parent.mkdir()
        path.write_text(json.dumps(content))

        with pytest.raises(DefectiveRecordError):
            load_record_file(path)


class TestDeploymentStore:
    """Test the DeploymentStore class."""

    def test_latest_reads_existing_files(self, temp_deployments_dir: Path):
        """Test that records on disk are visible through the store."""
        store = DeploymentStore(temp_deployments_dir)

        latest = store.latest("sepolia", "TokenContract")

        assert latest is not None
        assert latest.address == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
        assert len(store.history("sepolia", "TokenContract")) == 2

    def test_latest_returns_none_for_unknown(self, temp_deployments_dir: Path):
        """Test lookups of contracts and networks without records."""
        store = DeploymentStore(temp_deployments_dir)

        assert store.latest("sepolia", "Unknown") is None
        assert store.latest("mainnet", "TokenContract") is None

    def test_append_writes_hardhat_layout(self, tmp_path: Path):
        """Test that appending writes deployments/{network}/{contract}.json."""
        store = DeploymentStore(tmp_path)
        store.append(_record())

        path = tmp_path / "sepolia" / "TokenContract.json"
        data = json.loads(path.read_text())
        assert data["address"] == "0xaaaa"
        assert data["args"] == [1000000]
        assert data["receipt"]["blockNumber"] == 1
        assert data["numDeployments"] == 1
        assert "history" not in data

    def test_append_supersedes_and_keeps_history(self, tmp_path: Path):
        """Test that a redeploy keeps the previous record in history."""
        store = DeploymentStore(tmp_path)
        store.append(_record(address="0xaaaa", block=1))
        store.append(_record(address="0xbbbb", args=(2000000,), block=2))

        assert store.latest("sepolia", "TokenContract").address == "0xbbbb"
        assert [r.address for r in store.history("sepolia", "TokenContract")] == [
            "0xaaaa",
            "0xbbbb",
        ]

        data = json.loads((tmp_path / "sepolia" / "TokenContract.json").read_text())
        assert data["numDeployments"] == 2
        assert data["history"] == [record_to_dict(_record(address="0xaaaa", block=1))]

    def test_records_survive_reload(self, tmp_path: Path):
        """Test that a new store instance sees previously appended records."""
        DeploymentStore(tmp_path).append(_record(address="0xaaaa"))

        reloaded = DeploymentStore(tmp_path).latest("sepolia", "TokenContract")

        assert reloaded == _record(address="0xaaaa")

    def test_networks_are_isolated(self, tmp_path: Path):
        """Test that records on one network never show on another."""
        store = DeploymentStore(tmp_path)
        store.append(_record(network="sepolia", address="0xaaaa"))
        store.append(_record(network="mainnet", address="0xbbbb"))

        assert store.latest("sepolia", "TokenContract").address == "0xaaaa"
        assert store.latest("mainnet", "TokenContract").address == "0xbbbb"
        assert store.networks() == ["mainnet", "sepolia"]

    def test_in_memory_store_writes_nothing(self, tmp_path: Path):
        """Test that a store without root keeps records in memory."""
        store = DeploymentStore()
        store.append(_record())

        assert store.latest("sepolia", "TokenContract") is not None
        assert store.networks() == ["sepolia"]
        assert list(tmp_path.iterdir()) == []

    def test_ephemeral_network_not_persisted(self, tmp_path: Path):
        """Test that ephemeral networks stay in memory even with a root."""
        store = DeploymentStore(tmp_path, ephemeral_networks=["hardhat"])
        store.append(_record(network="hardhat"))

        assert store.latest("hardhat", "TokenContract") is not None
        assert not (tmp_path / "hardhat").exists()
        assert DeploymentStore(tmp_path).latest("hardhat", "TokenContract") is None

    def test_rejects_record_without_network(self):
        """Test that records must name their network."""
        record = DeploymentRecord(
            contract_name="TokenContract",
            address="0xaaaa",
            constructor_args=(),
            tx_hash="0x1",
            confirmed_block=1,
        )

        with pytest.raises(ValueError):
            DeploymentStore().append(record)

    def test_rejects_record_without_address(self):
        """Test that unconfirmed records cannot be stored."""
        with pytest.raises(ValueError):
            DeploymentStore().append(_record(address=""))

    def test_concurrent_appends_lose_nothing(self, tmp_path: Path):
        """Test that parallel appends on several networks are all kept."""
        store = DeploymentStore(tmp_path)
        networks = ["sepolia", "mainnet", "goerli", "holesky"]
        per_network = 10

        def worker(network: str) -> None:
            for i in range(per_network):
                store.append(_record(network=network, address=f"0x{i:04x}", block=i))

        threads = [threading.Thread(target=worker, args=(n,)) for n in networks for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for network in networks:
            assert len(store.history(network, "TokenContract")) == 2 * per_network
            reloaded = DeploymentStore(tmp_path).history(network, "TokenContract")
            assert len(reloaded) == 2 * per_network

    def test_contract_names(self, temp_deployments_dir: Path):
        """Test listing contract names of a network."""
        store = DeploymentStore(temp_deployments_dir)

        assert store.contract_names("sepolia") == ["TokenContract"]
        assert store.contract_names("mainnet") == []
