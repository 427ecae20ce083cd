"""
the uWSGI script for launching the course catalog search service.

This script launches the catalog search as a web service using uwsgi.  For example, one can
launch the service with the following command:

  uwsgi --plugin python3 --http-socket :9090 --wsgi-file catalog-uwsgi.py \
        --set-ph catalog_config_file=catalog_conf.yml

If the catalog_config_file option is not set, the configuration is read from the file named by
the CATALOG_CONFIG_FILE environment variable (or the built-in defaults are used).
"""
import os, sys, logging

import uwsgi

from nistoar.catalog import config, wsgi

def _dec(obj):
    # decode an object if it is not None
    return obj.decode() if isinstance(obj, (bytes, bytearray)) else obj

cfg = config.resolve_configuration(_dec(uwsgi.opt.get("catalog_config_file")))

config.configure_log(config=cfg)

# fails (and so aborts startup) if the records cannot be loaded
application = wsgi.app(cfg)
logging.info("Catalog search service ready")
