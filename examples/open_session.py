#!/usr/bin/env python3
"""Open a log directory and print a few derived channels.

    python examples/open_session.py /tmp/run1
"""

import sys

from wheeltelem.provider import SessionProvider
from wheeltelem.session import CustomFormula
from wheeltelem.workbench import Workbench

wb = Workbench(custom=[
    CustomFormula("total_power", "power_fl + power_fr + power_rl + power_rr"),
    CustomFormula("torque_error_fl", "torque_set_fl - torque_real_fl"),
    CustomFormula("motor_delta", "water_temp_motor - water_temp_converter"),
])
if not wb.open_dir(sys.argv[1]):
    print(f"error: {wb.error}", file=sys.stderr)
    sys.exit(1)

provider = SessionProvider(wb.session)
for name, count in provider.sample_counts().items():
    series = provider.query(name)
    if count:
        print(f"{name:<22s} {count:6d} samples  "
              f"mean={series.values.mean():9.3f}")
