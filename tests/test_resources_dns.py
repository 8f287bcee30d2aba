"""Tests for the load balancer and DNS resources."""

import pytest
from fakes import ZONE_NAME

from clusteroperator.core.errors import DependencyUnresolvedError, MalformedKeyError, ResourceNotFoundError
from clusteroperator.resources.aws.elb import Listener, LoadBalancer
from clusteroperator.resources.aws.route53 import HostedZone, RecordSet, normalize_dns_name
from clusteroperator.resources.base import DNSNamedResource


class TestLoadBalancer:
    """Test the API load balancer."""

    @pytest.mark.asyncio
    async def test_create_in_subnet(self, fake_aws):
        lb = LoadBalancer(
            name="abc12-api",
            clients=fake_aws.clients,
            subnet_id="subnet-1",
            security_group_id="sg-1",
            cluster_id="abc12",
        )

        assert await lb.create_if_not_exists() is True

        params = fake_aws.elb.called("create_load_balancer")[0]
        assert params["Subnets"] == ["subnet-1"]
        assert "AvailabilityZones" not in params
        assert params["Listeners"] == [
            {"Protocol": "TCP", "LoadBalancerPort": 443, "InstanceProtocol": "TCP", "InstancePort": 6443}
        ]
        assert lb.dns_name.startswith("abc12-api-")
        assert lb.hosted_zone_id == "Z215JYRZR1TBD5"
        assert isinstance(lb, DNSNamedResource)

    @pytest.mark.asyncio
    async def test_create_in_zone(self, fake_aws):
        lb = LoadBalancer(
            name="abc12-api",
            clients=fake_aws.clients,
            availability_zone="eu-central-1a",
            security_group_id="sg-1",
            listener=Listener(port=8443, instance_port=443),
        )

        await lb.create_or_fail()

        params = fake_aws.elb.called("create_load_balancer")[0]
        assert params["AvailabilityZones"] == ["eu-central-1a"]
        assert params["Listeners"][0]["LoadBalancerPort"] == 8443

    @pytest.mark.asyncio
    async def test_requires_security_group(self, fake_aws):
        with pytest.raises(DependencyUnresolvedError):
            await LoadBalancer(name="abc12-api", clients=fake_aws.clients, subnet_id="s").create_or_fail()

    @pytest.mark.asyncio
    async def test_register_instances(self, fake_aws):
        lb = LoadBalancer(name="abc12-api", clients=fake_aws.clients, subnet_id="s", security_group_id="sg")
        await lb.create_or_fail()

        await lb.register_instances(["i-1", "i-2"])
        await lb.register_instances([])

        assert fake_aws.elb.load_balancers["abc12-api"]["Instances"] == [{"InstanceId": "i-1"}, {"InstanceId": "i-2"}]
        assert len(fake_aws.elb.called("register_instances_with_load_balancer")) == 1

    @pytest.mark.asyncio
    async def test_delete_missing(self, fake_aws):
        with pytest.raises(ResourceNotFoundError):
            await LoadBalancer(name="abc12-api", clients=fake_aws.clients).delete()


class TestHostedZone:
    """Zones are matched on their normalized name."""

    def test_normalize_strips_trailing_dot(self):
        assert normalize_dns_name("aws.giantswarm.io.") == "aws.giantswarm.io"
        assert normalize_dns_name("aws.giantswarm.io") == "aws.giantswarm.io"

    @pytest.mark.asyncio
    async def test_for_domain(self, fake_aws):
        zone = await HostedZone.for_domain("api.abc12.g8s.eu-central-1.example.aws.giantswarm.io", fake_aws.clients)

        assert zone.name == ZONE_NAME
        assert zone.id.startswith("/hostedzone/")

    @pytest.mark.asyncio
    async def test_for_malformed_domain(self, fake_aws):
        with pytest.raises(MalformedKeyError):
            await HostedZone.for_domain("api.example.com", fake_aws.clients)

    @pytest.mark.asyncio
    async def test_nearest_zone_is_not_a_match(self, fake_aws):
        fake_aws.route53.add_zone("zzz.example.com")

        with pytest.raises(ResourceNotFoundError):
            await HostedZone.from_existing("example.com", fake_aws.clients)

    @pytest.mark.asyncio
    async def test_create_and_reuse(self, fake_aws):
        zone = HostedZone(name="k8s.example.com.", clients=fake_aws.clients, comment="test")

        assert await zone.create_if_not_exists() is True
        again = await HostedZone.from_existing("k8s.example.com", fake_aws.clients)

        assert again.id == zone.id


class TestRecordSet:
    @pytest.mark.asyncio
    async def test_requires_zone_id(self, fake_aws):
        record = RecordSet(
            name="api.example.com",
            clients=fake_aws.clients,
            target_dns_name="lb.elb.amazonaws.com",
            target_hosted_zone_id="Z215JYRZR1TBD5",
        )

        with pytest.raises(DependencyUnresolvedError):
            await record.create_or_fail()

        assert fake_aws.route53.calls == []

    @pytest.mark.asyncio
    async def test_upsert_and_delete(self, fake_aws):
        zone = await HostedZone.from_existing(ZONE_NAME, fake_aws.clients)
        record = RecordSet(
            name="api.abc12.aws.giantswarm.io",
            clients=fake_aws.clients,
            hosted_zone_id=zone.id,
            target_dns_name="lb.elb.amazonaws.com",
            target_hosted_zone_id="Z215JYRZR1TBD5",
        )

        await record.create_or_fail()
        await record.create_or_fail()

        records = fake_aws.route53.records[zone.id]
        assert list(records) == ["api.abc12.aws.giantswarm.io"]
        assert records["api.abc12.aws.giantswarm.io"]["AliasTarget"]["DNSName"] == "lb.elb.amazonaws.com"
        assert record.dns_name == "lb.elb.amazonaws.com"

        await record.delete()
        assert records == {}

    @pytest.mark.asyncio
    async def test_get_reads_alias_target_from_zone(self, fake_aws):
        zone = await HostedZone.from_existing(ZONE_NAME, fake_aws.clients)
        await RecordSet(
            name="api.abc12.aws.giantswarm.io",
            clients=fake_aws.clients,
            hosted_zone_id=zone.id,
            target_dns_name="lb.elb.amazonaws.com",
            target_hosted_zone_id="Z215JYRZR1TBD5",
        ).create_or_fail()

        record = RecordSet(name="api.abc12.aws.giantswarm.io", clients=fake_aws.clients, hosted_zone_id=zone.id)
        await record.get()

        assert record.dns_name == "lb.elb.amazonaws.com"
        assert record.target_hosted_zone_id == "Z215JYRZR1TBD5"

    @pytest.mark.asyncio
    async def test_get_ignores_neighbouring_record(self, fake_aws):
        zone = await HostedZone.from_existing(ZONE_NAME, fake_aws.clients)
        await RecordSet(
            name="etcd.abc12.aws.giantswarm.io",
            clients=fake_aws.clients,
            hosted_zone_id=zone.id,
            target_dns_name="lb.elb.amazonaws.com",
            target_hosted_zone_id="Z215JYRZR1TBD5",
        ).create_or_fail()

        record = RecordSet(name="api.abc12.aws.giantswarm.io", clients=fake_aws.clients, hosted_zone_id=zone.id)
        with pytest.raises(ResourceNotFoundError):
            await record.get()
