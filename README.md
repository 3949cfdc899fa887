# nsvpn

`nsvpn` is a library for running applications through a VPN connection that
lives in its own Linux network namespace. The rest of the system keeps its
normal network; only processes started inside the namespace use the tunnel.

Most operations call `ip`, `iptables`, `nft` and `sudo`, so they need a Linux
system and root privileges (commands are prefixed with `sudo` when the
current user is not root).

## Modules

- `nsvpn.nsexec` – running commands on the host (`sudo_command`) and inside
  a namespace (`exec_no_block`, `exec_in`, `exec_with_output`,
  `build_exec_args`); `config_dir()` and `lock_namespaces()` for the lockfile
  directory `<config dir>/nsvpn/locks/<namespace>/<pid>`.
- `nsvpn.netns` – `create_namespace()` runs `ip netns add` and returns a
  `NetworkNamespace`. It can bring up loopback (`add_loopback`), address and
  route an existing veth pair (`add_routing`, using `10.200.<subnet>.1` for
  the host and `.2` for the namespace), write DNS configuration
  (`dns_config`), add host masquerading and forwarding exceptions, write a
  JSON lockfile (`write_lockfile`) and be reloaded from one
  (`NetworkNamespace.from_existing`). `close()` removes this process's
  lockfile and, when no other lockfiles remain, runs the optional predown
  command (with `NSVPN_NS`, `NSVPN_NS_IP` and `NSVPN_HOST_IP` set), releases
  its resources and deletes the namespace. It is also a context manager.
- `nsvpn.dns_config` – `write_dns_config()` writes `resolv.conf`, `hosts`
  (with an `nsvpn.host` entry when host access is allowed) and a rewritten
  `nsswitch.conf` under `/etc/netns/<name>`; `DnsConfig.close()` removes
  the directory.
- `nsvpn.host_masquerade` – `add_masquerade_rule()` and
  `add_firewall_exception()` for iptables or nftables (tables `nsvpn_nat`
  and `nsvpn_bridge`); their `close()` removes the rules only once no
  namespace holds a lockfile.
- `nsvpn.firewall` – the `Firewall` enum (`IpTables`, `NfTables`) and
  `disable_ipv6()` / `ipv6_drop_commands()`.
- `nsvpn.network_interface` – `NetworkInterface`, `get_active_interfaces()`
  and `parse_active_interfaces()` for `ip addr` output.
- `nsvpn.application_wrapper` – `ApplicationWrapper` starts a command inside
  a namespace, warning when a browser that shares one process per profile is
  already running (`shared_process_conflicts`).
- `nsvpn.openfortivpn` – `start_openfortivpn()` launches OpenFortiVPN in a
  namespace, waits for the tunnel, routes through the remote peer found in
  `/tmp/pppd.log` and sets DNS; `get_dns()` and `get_remote_peer()` parse its
  output.
- `nsvpn.providers` – the `Provider` base class and `Mullvad`, `NordVPN`,
  `ProtonVPN` and `Warp`, with Mullvad account-number validation.
- `nsvpn.mullvad_openvpn` – `MullvadOpenVpn.create_openvpn_config()` fetches
  Mullvad's relay list and writes one `.ovpn` file per country, plus the
  credentials file; `group_remotes`, `bridge_routes` and `render_config`
  are the pure pieces.
- `nsvpn.pia` – Private Internet Access configuration sets
  (`PiaConfigType`), the hostname lookup file (`PiaConfig`),
  `extract_hostname()`, `hostname_for_openvpn_conf()` and
  `pia_provider_dns()`.
- `nsvpn.ui` – the `UiClient` abstract class and the question types
  (`BoolChoice`, `Input`, `InputNumericU16`, `Password`,
  `ConfigurationChoice`) that providers ask a front end to answer.
- `nsvpn.vpn` – `OpenVpnProtocol`, `Protocol`, `VpnServer` and
  `verify_auth()`, which prompts for credentials when the auth file is
  missing.

## Installation

```
pip install nsvpn
```

## Example: a namespace with host masquerading

```python
from nsvpn.firewall import Firewall
from nsvpn.netns import create_namespace
from nsvpn.network_interface import NetworkInterface
from nsvpn.providers import Mullvad
from nsvpn.vpn import Protocol

ns = create_namespace("vpn_mv_example", Mullvad().alias(), Protocol.OpenVpn, Firewall.IpTables)
with ns:
    ns.add_loopback()
    ns.add_host_masquerade(1, NetworkInterface.from_str("eth0"), Firewall.IpTables)
    ns.write_lockfile("firefox")
    # ... run applications ...
```

## Example: Mullvad OpenVPN configuration

```python
from nsvpn.mullvad_openvpn import MullvadOpenVpn
from nsvpn.ui import UiClient


class Prompt(UiClient):
    def get_configuration_choice(self, conf_choice):
        for index, name in enumerate(conf_choice.all_names()):
            print(index, name)
        return int(input(conf_choice.prompt() + ": "))

    def get_bool_choice(self, bool_choice):
        return input(bool_choice.prompt + " [y/N]: ").lower() == "y"

    def get_input(self, input_spec):
        value = input(input_spec.prompt + ": ")
        input_spec.validate(value)
        return value

    def get_input_numeric_u16(self, input_spec):
        value = int(input(input_spec.prompt + ": "))
        input_spec.validate(value)
        return value

    def get_password(self, password):
        return input(password.prompt + ": ")


MullvadOpenVpn(ca_cert=open("mullvad_ca.crt").read()).create_openvpn_config(Prompt())
```

Pure helpers such as `nsvpn.openfortivpn.get_dns`,
`nsvpn.mullvad_openvpn.group_remotes` and
`nsvpn.network_interface.parse_active_interfaces` work on plain text and need
no privileges.

## What it does not do

- There is no command-line program; the package is a library.
- It does not create veth pairs. `NetworkNamespace.add_routing` expects
  `veth_pair` to be set already (an object with `source` and `dest` names)
  and raises `RuntimeError` otherwise; `dns_config` needs `add_routing` to
  have run first.
- Of the VPN clients only OpenFortiVPN is started; there is no support for
  running OpenVPN, WireGuard, OpenConnect, Shadowsocks or Warp connections,
  and no port forwarding.
- Mullvad's CA certificate is not bundled; pass it as `ca_cert`.
- Private Internet Access configuration archives are not downloaded;
  `nsvpn.pia` only describes them and reads the hostname lookup file.

## Running the tests

```
pip install nsvpn[test]
pytest
```