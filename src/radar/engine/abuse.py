from __future__ import annotations

from typing import Dict, Optional, Tuple

from ..schemas import AbuseReportingInfo

# provider key -> (reporting url, instructions); matched as a substring
# of the lower-cased organization name, first match wins.
ABUSE_REPORTING: Dict[str, Tuple[str, str]] = {
    "cloudflare": (
        "https://abuse.cloudflare.com",
        "Submit abuse report via Cloudflare's Trust & Safety portal",
    ),
    "amazon": (
        "https://aws.amazon.com/premiumsupport/knowledge-center/report-aws-abuse/",
        "Report via AWS abuse form with IP and evidence",
    ),
    "digitalocean": (
        "https://www.digitalocean.com/company/contact#abuse",
        "Email abuse@digitalocean.com with incident details",
    ),
    "ovh": (
        "https://www.ovh.com/abuse/",
        "Submit via OVH abuse portal with IP and timestamps",
    ),
    "hetzner": ("https://abuse.hetzner.com", "Report via Hetzner abuse form"),
    "google": (
        "https://support.google.com/code-of-conduct/contact/cloud_platform_report",
        "Report via Google Cloud abuse form",
    ),
    "microsoft": (
        "https://msrc.microsoft.com/report/abuse",
        "Report via Microsoft Security Response Center",
    ),
    "linode": ("https://www.linode.com/legal-abuse/", "Email abuse@linode.com with details"),
    "vultr": (
        "https://www.vultr.com/docs/vultr-abuse-handling",
        "Email abuse@vultr.com with IPs and evidence",
    ),
    "godaddy": (
        "https://supportcenter.godaddy.com/AbuseReport",
        "Report via GoDaddy abuse reporting form",
    ),
}


def abuse_reporting_info(org: Optional[str]) -> Optional[AbuseReportingInfo]:
    lowered = (org or "").lower()
    if not lowered:
        return None
    for provider, (url, instructions) in ABUSE_REPORTING.items():
        if provider in lowered:
            return AbuseReportingInfo(provider=provider, url=url, instructions=instructions)
    return None
