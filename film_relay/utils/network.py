import socket


def get_local_ip() -> str:
    """Best guess at this host's LAN IPv4 address, falling back to localhost.

    Connecting a UDP socket sends no packets; it only asks the kernel which
    interface would route to the target.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        address = sock.getsockname()[0]
    except OSError:
        return "localhost"
    finally:
        sock.close()

    if address.startswith("127.") or address == "0.0.0.0":
        return "localhost"
    return address
