"""Network and CPU condition simulation for a browser page."""

from playwright.sync_api import Error as PlaywrightError

from probe_logging import get_logger

log = get_logger("conditions")

# Scenario tag -> condition. Profiles are the Chrome DevTools presets.
NETWORK_CONDITIONS = {
    "4G": {"profile": "Regular 4G", "description": "Regular 4G Network Profile"},
    "WIFI": {"profile": "WiFi", "description": "WiFi Network Profile"},
    "3G": {"profile": "Fast 3G", "description": "Fast 3G Network Profile"},
}

CPU_CONDITIONS = {
    "HighCPU": {"throttling": 1, "description": "High CPU Performance (No throttling)"},
    "LowCPU": {"throttling": 4, "description": "Low CPU Performance (4x throttling)"},
}

# throughput in bytes/s, latency in ms
NETWORK_PROFILES = {
    "No Throttling": {"latency": 0, "download": -1, "upload": -1},
    "WiFi": {"latency": 2, "download": 30 * 1000 * 1000 / 8, "upload": 15 * 1000 * 1000 / 8},
    "Regular 4G": {"latency": 20, "download": 4 * 1000 * 1000 / 8, "upload": 3 * 1000 * 1000 / 8},
    "Fast 3G": {"latency": 562.5, "download": 1.6 * 1000 * 1000 / 8 * 0.9, "upload": 750 * 1000 / 8 * 0.9},
    "Slow 3G": {"latency": 2000, "download": 500 * 1000 / 8 * 0.8, "upload": 500 * 1000 / 8 * 0.8},
}

DEFAULT_NETWORK_CONDITION = "WIFI"


def network_profile(name):
    try:
        return NETWORK_PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown network profile: {name}") from None


def apply_simulation(page, config, logger=None):
    """Apply network/CPU degradation; failures are logged and never raised.

    Returns True when at least one condition was applied.
    """
    logger = logger or log
    wants_network = bool(config.network_condition) and config.network_condition != DEFAULT_NETWORK_CONDITION
    wants_cpu = bool(config.cpu_condition) and config.cpu_throttling > 1
    if not wants_network and not wants_cpu:
        logger.debug("No simulation conditions requested")
        return False

    try:
        cdp = page.context.new_cdp_session(page)
    except PlaywrightError as exc:
        logger.warning(f"Could not apply simulation conditions: {exc}")
        return False

    applied = False
    if wants_network:
        try:
            profile = network_profile(config.network_profile)
            logger.info(f"Applying {config.network_condition} network simulation ({config.network_profile})")
            cdp.send("Network.enable")
            cdp.send(
                "Network.emulateNetworkConditions",
                {
                    "offline": False,
                    "latency": profile["latency"],
                    "downloadThroughput": profile["download"],
                    "uploadThroughput": profile["upload"],
                },
            )
            applied = True
        except (PlaywrightError, ValueError) as exc:
            logger.warning(f"Could not apply network simulation: {exc}")

    if wants_cpu:
        try:
            logger.info(
                f"Applying {config.cpu_condition} CPU simulation ({config.cpu_throttling}x throttling)"
            )
            cdp.send("Emulation.setCPUThrottlingRate", {"rate": config.cpu_throttling})
            applied = True
        except PlaywrightError as exc:
            logger.warning(f"Could not apply CPU simulation: {exc}")

    if applied:
        logger.debug("Simulation conditions applied successfully")
    return applied


def env_for_tags(tags):
    """Environment variables for the engine derived from scenario tags like @4G or @LowCPU."""
    env = {}
    for tag in tags or ():
        name = str(tag).strip().lstrip("@")
        if name in NETWORK_CONDITIONS:
            env["NETWORK_CONDITION"] = name
            env["NETWORK_PROFILE"] = NETWORK_CONDITIONS[name]["profile"]
            log.info(f"Network Condition: {NETWORK_CONDITIONS[name]['description']}")
        elif name in CPU_CONDITIONS:
            env["CPU_CONDITION"] = name
            env["CPU_THROTTLING"] = str(CPU_CONDITIONS[name]["throttling"])
            log.info(f"CPU Condition: {CPU_CONDITIONS[name]['description']}")
    return env
