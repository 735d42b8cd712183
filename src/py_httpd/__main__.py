"""Allow ``python -m py_httpd <port>``."""

from py_httpd.cli import main

main()
