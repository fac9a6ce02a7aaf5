import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

def setup_logging(level: str = "INFO"):
    root = logging.getLogger()
    if getattr(root, "_paywall_configured", False):
        root.setLevel(level)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    root._paywall_configured = True
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
