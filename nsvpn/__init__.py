"""Network namespaces, firewall rules, DNS and provider configuration for VPN connections on Linux."""

__version__ = "0.1.0"