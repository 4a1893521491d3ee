"""
Multiple Testing Example
========================

Power for every path in a serial mediation model with a Holm correction.
"""

import medpower

print("=" * 60)
print("MULTIPLE TESTING EXAMPLE")
print("=" * 60)

model = medpower.MedPower("""
    m1 ~ a*x
    m2 ~ d*m1 + x
    y  ~ b*m2 + m1 + cp*x
    serial := a*d*b
""")
model.set_effects("a=0.4, d=0.3, b=0.4, m2~x=0.1, y~m1=0.1, cp=0.05")

print("\n1. UNCORRECTED:")
model.find_power(sample_size=200, target_test="paths")

print("\n2. HOLM CORRECTION:")
model.find_power(sample_size=200, target_test="paths", correction="holm", summary="long")
