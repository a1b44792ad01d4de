"""Engine stand-in that starts but never serves its control port."""

import time

if __name__ == "__main__":
    while True:
        time.sleep(1.0)
