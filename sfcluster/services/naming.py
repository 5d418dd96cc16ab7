import re
def safe_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9-]", "-", str(name))[:63].strip("-")

def storage_account_name(desired: str) -> str:
    # Azure Storage account rules: [a-z0-9], length 3-24
    raw = (desired or "storage").lower()
    sa_name = "".join(ch for ch in raw if ch.isalnum())
    if len(sa_name) < 3:
        sa_name = (sa_name + "stx")[:3]
    if len(sa_name) > 24:
        sa_name = sa_name[:24]

    # Make sure it starts with a letter (not mandatory, but avoids some org policies)
    if not sa_name[0].isalpha():
        sa_name = ("st" + sa_name)[:24]
    return sa_name
