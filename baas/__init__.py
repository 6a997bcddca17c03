"""baas/ -- Backend-as-a-service platform clients for OTPGate.

Layer rule: baas/ imports only stdlib + third-party libraries (and core/ for
settings). It does NOT import from api/, web/, or auth/.
auth/ imports from baas/, not the other way around.
"""
