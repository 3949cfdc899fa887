import ipaddress

import pytest

from nsvpn.pia import (
    PiaConfig,
    PiaConfigType,
    extract_hostname,
    hostname_for_openvpn_conf,
    pia_provider_dns,
)


def test_index_to_variant_order():
    assert PiaConfigType.index_to_variant(0) is PiaConfigType.DefaultConf
    assert PiaConfigType.index_to_variant(6) is PiaConfigType.LegacyTcpIp


@pytest.mark.parametrize("index", [-1, 7, 100])
def test_index_to_variant_invalid(index):
    with pytest.raises(ValueError):
        PiaConfigType.index_to_variant(index)


def test_default_url():
    assert (
        PiaConfigType.DefaultConf.url()
        == "https://www.privateinternetaccess.com/openvpn/openvpn.zip"
    )


def test_legacy_tcp_url():
    assert (
        PiaConfigType.LegacyTcpIp.url()
        == "https://www.privateinternetaccess.com/openvpn/openvpn-ip-tcp.zip"
    )


def test_urls_are_distinct_zips():
    strong_url = PiaConfigType.Strong.url()
    assert strong_url == "https://www.privateinternetaccess.com/openvpn/openvpn-strong.zip"
    urls = [PiaConfigType.index_to_variant(index).url() for index in range(7)]
    assert len(set(urls)) == 7
    assert all(url.endswith(".zip") for url in urls)


def test_all_names():
    names = PiaConfigType.default().all_names()
    assert names == [
        "Default",
        "IP",
        "Strong",
        "TCP",
        "Strong TCP",
        "Legacy IP",
        "Legacy TCP IP",
    ]


def test_all_descriptions_match_names_order():
    descriptions = PiaConfigType.default().all_descriptions()
    assert len(descriptions) == len(PiaConfigType.default().all_names())
    assert descriptions[2] == PiaConfigType.Strong.description()


def test_description_text():
    assert PiaConfigType.Tcp.description() == (
        "These files connect over TCP port 502 with AES-128-CBC+SHA1, "
        "using the server name to connect."
    )


def test_prompt():
    assert PiaConfigType.Ip.prompt() == (
        "Please choose the set of OpenVPN configuration files you wish to install"
    )


def test_extract_hostname_found():
    text = "client\ndev tun\nremote  uk-london.example.com 1198\nresolv-retry infinite\n"
    assert extract_hostname(text) == "uk-london.example.com"


def test_extract_hostname_missing():
    assert extract_hostname("client\ndev tun\nproto udp\n") is None


def test_extract_hostname_requires_port():
    assert extract_hostname("client\nremote host.example.com\n") is None


def test_config_round_trip(tmp_path):
    path = tmp_path / "config.txt"
    config = PiaConfig({"uk-gb.ovpn": "uk.example.com", "fr-fr.ovpn": "fr.example.com"})
    config.save(path)
    assert PiaConfig.load(path) == config


def test_hostname_lookup(tmp_path):
    path = tmp_path / "config.txt"
    PiaConfig({"de-de.ovpn": "de.example.com"}).save(path)
    assert hostname_for_openvpn_conf(path, "de-de.ovpn") == "de.example.com"


def test_hostname_lookup_missing(tmp_path):
    path = tmp_path / "config.txt"
    PiaConfig({"de-de.ovpn": "de.example.com"}).save(path)
    with pytest.raises(KeyError):
        hostname_for_openvpn_conf(path, "us-us.ovpn")


def test_hostname_lookup_no_file(tmp_path):
    with pytest.raises(OSError):
        hostname_for_openvpn_conf(tmp_path / "absent.txt", "de-de.ovpn")


def test_provider_dns():
    assert pia_provider_dns() == [
        ipaddress.IPv4Address("209.222.18.222"),
        ipaddress.IPv4Address("209.222.18.218"),
    ]