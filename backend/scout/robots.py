import logging
from dataclasses import dataclass, field
from typing import Dict, List
from urllib.parse import urlsplit

import httpx

from .fetcher import fetch_html

logger = logging.getLogger(__name__)

ROBOTS_TIMEOUT = 10.0


@dataclass
class RobotsPolicy:
    domain: str
    disallows: List[str] = field(default_factory=list)


def parse_robots(text: str) -> List[str]:
    # User-agent groups are not tracked: every Disallow line applies to us.
    disallows: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.lower().startswith("disallow:"):
            path = line.split(":", 1)[1].split("#", 1)[0].strip()
            if path:
                disallows.append(path)
    return disallows


def is_allowed(url: str, policy: RobotsPolicy) -> bool:
    try:
        path = urlsplit(url).path or "/"
    except ValueError:
        return False
    for rule in policy.disallows:
        if rule == "/":
            return False
        if path.startswith(rule):
            return False
    return True


class RobotsCache:
    """robots.txt policies for one crawl job, fetched at most once per domain."""

    def __init__(self):
        self.policies: Dict[str, RobotsPolicy] = {}

    async def get_policy(self, client: httpx.AsyncClient, domain: str) -> RobotsPolicy:
        policy = self.policies.get(domain)
        if policy is None:
            text = await fetch_html(client, f"https://{domain}/robots.txt",
                                    timeout=ROBOTS_TIMEOUT, allow_plain=True)
            if text is None:
                # fail open
                logger.info("no robots.txt for %s, treating as crawlable", domain)
                policy = RobotsPolicy(domain)
            else:
                policy = RobotsPolicy(domain, parse_robots(text))
            self.policies[domain] = policy
        return policy
