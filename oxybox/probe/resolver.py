"""Asynchronous DNS resolution against explicitly configured nameservers."""

import ipaddress
from typing import List

import dns.asyncresolver
import dns.resolver

# Resolution policy: 2 attempts of 100ms each, 1024 cached answers, TCP to port 53
DNS_ATTEMPTS = 2
DNS_ATTEMPT_TIMEOUT = 0.1
DNS_CACHE_SIZE = 1024
DNS_PORT = 53


class DnsResolver:
    """
    Resolves hostnames to a single IP address.

    Built once at startup and shared by every organisation loop; holds no
    mutable state besides the answer cache.
    """

    def __init__(self, nameservers: List[str]):
        """
        Initialize resolver.

        Args:
            nameservers: Nameserver IP strings (e.g. ["1.1.1.1", "8.8.8.8"])

        Raises:
            ValueError: If a nameserver is not an IP address or none are given
        """
        if not nameservers:
            raise ValueError("At least one DNS host is required")
        for host in nameservers:
            ipaddress.ip_address(host)

        self.nameservers = list(nameservers)
        self._resolver = dns.asyncresolver.Resolver(configure=False)
        self._resolver.port = DNS_PORT
        self._resolver.nameservers = self.nameservers
        self._resolver.timeout = DNS_ATTEMPT_TIMEOUT
        self._resolver.lifetime = DNS_ATTEMPT_TIMEOUT * DNS_ATTEMPTS
        self._resolver.cache = dns.resolver.LRUCache(DNS_CACHE_SIZE)

    async def lookup_ip(self, host: str) -> str:
        """
        Resolve ``host`` and return the first address of the answer.

        IPv4 records are preferred; AAAA is queried only when the name has no
        A records. IP literals are returned unchanged.

        Raises:
            dns.exception.DNSException: If resolution fails
        """
        try:
            return str(ipaddress.ip_address(host.strip("[]")))
        except ValueError:
            pass

        try:
            answer = await self._resolver.resolve(host, "A", tcp=True)
        except dns.resolver.NoAnswer:
            answer = await self._resolver.resolve(host, "AAAA", tcp=True)

        for rdata in answer:
            return rdata.address
        raise dns.resolver.NoAnswer(response=answer.response)
