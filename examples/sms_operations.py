"""
SMS operations example.

Demonstrates sending an SMS and reading announced messages without the
mail side of the bridge.
"""

import sys

from smsbridge import OutboundSms, SerialTransport
from smsbridge.core import ATProtocol, LineDemultiplexer
from smsbridge.exceptions import BridgeError
from smsbridge.features import SMSManager

# Replace with your serial port
PORT = "/dev/ttyUSB2"


def main():
    """Main function."""
    print("smsbridge - SMS Operations Example\n")

    transport = SerialTransport(PORT)
    demux = LineDemultiplexer(transport)
    protocol = ATProtocol(demux)
    sms = SMSManager(protocol)

    try:
        protocol.handshake()
        print("Modem answered AT\n")

        if len(sys.argv) > 2:
            number, text = sys.argv[1], " ".join(sys.argv[2:])
            ref = sms.send_sms(OutboundSms(number, text))
            print(f"Sent to {number}, reference {ref}\n")

        # Anything announced by +CMTI while we talked to the modem
        demux.read_all()
        for index in demux.pending.take_all():
            message = sms.read_sms(index)
            print(f"[{index}] {message.from_number} at {message.received_time:%Y-%m-%d %H:%M}")
            print(f"    {message.body}")

    except BridgeError as e:
        print(f"Error: {e}")
        return 1

    finally:
        transport.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
