"""Tests for key pairs, KMS keys and IAM identity resources."""

import json

import pytest

from clusteroperator.core.errors import (
    AlreadyExistsError,
    DependencyUnresolvedError,
    NotReusableError,
    ProviderError,
    ResourceNotFoundError,
)
from clusteroperator.resources.aws.iam import (
    InstanceProfile,
    Policy,
    ProfileNotReadyError,
    Role,
    machine_policy_document,
)
from clusteroperator.resources.aws.keypair import KeyPair
from clusteroperator.resources.aws.kms import KEY_PENDING_WINDOW_DAYS, KMSEncryptor, KMSKey
from clusteroperator.resources.retry import RetryPolicy

FAST = RetryPolicy(timeout=2.0, initial=0.0, maximum=0.0)


class TestKeyPair:
    """Key pairs are reusable by name."""

    @pytest.mark.asyncio
    async def test_imports_public_key(self, fake_aws):
        pair = KeyPair(name="abc12-key", clients=fake_aws.clients, public_key_material=b"ssh-rsa AAAA")

        assert await pair.create_if_not_exists() is True

        assert fake_aws.ec2.called("import_key_pair")[0]["PublicKeyMaterial"] == b"ssh-rsa AAAA"
        assert not fake_aws.ec2.called("create_key_pair")
        assert pair.fingerprint == "aa:bb:cc"

    @pytest.mark.asyncio
    async def test_generates_key_without_material(self, fake_aws):
        pair = KeyPair(name="abc12-key", clients=fake_aws.clients)

        await pair.create_if_not_exists()

        assert fake_aws.ec2.called("create_key_pair") == [{"KeyName": "abc12-key"}]

    @pytest.mark.asyncio
    async def test_second_create_reuses(self, fake_aws):
        await KeyPair(name="abc12-key", clients=fake_aws.clients).create_if_not_exists()
        again = KeyPair(name="abc12-key", clients=fake_aws.clients)

        assert await again.create_if_not_exists() is False
        assert again.id == fake_aws.ec2.key_pairs["abc12-key"]["KeyPairId"]

    @pytest.mark.asyncio
    async def test_delete_missing_is_not_found(self, fake_aws):
        with pytest.raises(ResourceNotFoundError):
            await KeyPair(name="abc12-key", clients=fake_aws.clients).delete()


class TestKMSKey:
    """KMS keys are never reused and are deleted by scheduling."""

    @pytest.mark.asyncio
    async def test_create_if_not_exists_is_not_supported(self, fake_aws):
        key = KMSKey(name="abc12", clients=fake_aws.clients)

        with pytest.raises(NotReusableError):
            await key.create_if_not_exists()

        assert not fake_aws.kms.called("create_key")

    @pytest.mark.asyncio
    async def test_create_registers_alias(self, fake_aws):
        key = KMSKey(name="abc12", clients=fake_aws.clients, cluster_id="abc12")

        await key.create_or_fail()

        assert key.full_alias == "alias/abc12"
        assert key.arn.startswith("arn:aws:kms:")
        assert fake_aws.kms.aliases["alias/abc12"] in key.arn

    @pytest.mark.asyncio
    async def test_alias_taken_retires_new_key(self, fake_aws):
        existing = KMSKey(name="abc12", clients=fake_aws.clients)
        await existing.create_or_fail()

        second = KMSKey(name="abc12", clients=fake_aws.clients)
        with pytest.raises(AlreadyExistsError):
            await second.create_or_fail()

        assert list(fake_aws.kms.scheduled.values()) == [KEY_PENDING_WINDOW_DAYS]
        assert second.arn == ""

        await second.get()
        assert second.arn == existing.arn

    @pytest.mark.asyncio
    async def test_delete_removes_alias_and_schedules_deletion(self, fake_aws):
        key = KMSKey(name="abc12", clients=fake_aws.clients)
        await key.create_or_fail()
        key_id = fake_aws.kms.aliases["alias/abc12"]

        await key.delete()

        assert "alias/abc12" not in fake_aws.kms.aliases
        assert fake_aws.kms.scheduled == {key_id: 7}
        assert fake_aws.kms.keys[key_id]["KeyState"] == "PendingDeletion"

    @pytest.mark.asyncio
    async def test_delete_missing_is_not_found(self, fake_aws):
        with pytest.raises(ResourceNotFoundError):
            await KMSKey(name="abc12", clients=fake_aws.clients).delete()

    @pytest.mark.asyncio
    async def test_encryptor(self, fake_aws):
        key = KMSKey(name="abc12", clients=fake_aws.clients)
        await key.create_or_fail()

        ciphertext = await KMSEncryptor(fake_aws.clients).encrypt(key.arn, b"secret")

        assert ciphertext == b"encrypted:secret"


class TestRoleAndPolicy:
    @pytest.mark.asyncio
    async def test_role_reused_by_name(self, fake_aws):
        first = Role(name="abc12-EC2-K8S-Role", clients=fake_aws.clients)
        second = Role(name="abc12-EC2-K8S-Role", clients=fake_aws.clients)

        assert await first.create_if_not_exists() is True
        assert await second.create_if_not_exists() is False
        assert second.arn == first.arn

        document = json.loads(fake_aws.iam.called("create_role")[0]["AssumeRolePolicyDocument"])
        assert document["Statement"]["Principal"] == {"Service": "ec2.amazonaws.com"}

    @pytest.mark.asyncio
    async def test_policy_found_by_listing(self, fake_aws):
        document = machine_policy_document("arn:aws:kms:key/1", "abc12-g8s-cloudconfig")
        first = Policy(name="abc12-EC2-K8S-Policy", clients=fake_aws.clients, document=document)
        await first.create_if_not_exists()

        second = Policy(name="abc12-EC2-K8S-Policy", clients=fake_aws.clients)
        await second.get()

        assert second.arn == first.arn
        assert fake_aws.iam.called("list_policies") == [{"Scope": "Local"}] * 2

    def test_machine_policy_document(self):
        statements = json.loads(machine_policy_document("arn:key", "bucket"))["Statement"]

        assert statements[0] == {"Effect": "Allow", "Action": "kms:Decrypt", "Resource": "arn:key"}
        assert statements[1]["Resource"] == "arn:aws:s3:::bucket/*"

    @pytest.mark.asyncio
    async def test_attach_requires_role_name(self, fake_aws):
        policy = Policy(name="abc12-EC2-K8S-Policy", clients=fake_aws.clients, document="{}")
        await policy.create_or_fail()

        with pytest.raises(DependencyUnresolvedError):
            await policy.attach()

    @pytest.mark.asyncio
    async def test_attach_and_detach(self, fake_aws):
        role = Role(name="r", clients=fake_aws.clients)
        await role.create_or_fail()
        policy = Policy(name="p", clients=fake_aws.clients, role_name="r", document="{}")
        await policy.create_or_fail()

        await policy.attach()
        assert ("r", policy.arn) in fake_aws.iam.attachments

        await Policy(name="p", clients=fake_aws.clients, role_name="r").detach()
        assert fake_aws.iam.attachments == set()

    @pytest.mark.asyncio
    async def test_delete_attached_policy_fails(self, fake_aws):
        await Role(name="r", clients=fake_aws.clients).create_or_fail()
        policy = Policy(name="p", clients=fake_aws.clients, role_name="r", document="{}")
        await policy.create_or_fail()
        await policy.attach()

        with pytest.raises(ProviderError) as exc_info:
            await policy.delete()

        assert exc_info.value.details["code"] == "DeleteConflict"


class TestInstanceProfile:
    """Test instance profile role binding and readiness."""

    @pytest.mark.asyncio
    async def test_create_adds_role(self, fake_aws):
        profile = InstanceProfile(name="abc12-EC2-K8S-Profile", clients=fake_aws.clients, role_name="r")

        assert await profile.create_if_not_exists() is True

        assert profile.roles == ["r"]
        assert fake_aws.iam.profiles["abc12-EC2-K8S-Profile"]["Roles"] == ["r"]

    @pytest.mark.asyncio
    async def test_reused_profile_does_not_add_role_twice(self, fake_aws):
        await InstanceProfile(name="p", clients=fake_aws.clients, role_name="r").create_if_not_exists()

        profile = InstanceProfile(name="p", clients=fake_aws.clients, role_name="r")
        assert await profile.create_if_not_exists() is False
        assert await profile.ensure_role() is False

        assert len(fake_aws.iam.called("add_role_to_instance_profile")) == 1

    @pytest.mark.asyncio
    async def test_wait_until_ready_tolerates_propagation_lag(self, fake_aws):
        profile = InstanceProfile(name="p", clients=fake_aws.clients, role_name="r")
        await profile.create_or_fail()
        fake_aws.iam.profile_role_lag = 2

        await profile.wait_until_ready(FAST)

        assert len(fake_aws.iam.called("get_instance_profile")) == 3

    @pytest.mark.asyncio
    async def test_wait_until_ready_times_out(self, fake_aws):
        profile = InstanceProfile(name="p", clients=fake_aws.clients, role_name="r")
        await profile.create_or_fail()
        fake_aws.iam.profile_role_lag = 10_000_000

        with pytest.raises(ProviderError, match="Timed out") as exc_info:
            await profile.wait_until_ready(RetryPolicy(timeout=0.05, initial=0.0, maximum=0.0))

        assert isinstance(exc_info.value.__cause__, ProfileNotReadyError)

    @pytest.mark.asyncio
    async def test_remove_role_then_delete(self, fake_aws):
        profile = InstanceProfile(name="p", clients=fake_aws.clients, role_name="r")
        await profile.create_or_fail()

        await profile.remove_role()
        await profile.delete()

        assert fake_aws.iam.profiles == {}
