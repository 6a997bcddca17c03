"""auth/ -- Email-OTP authentication package for OTPGate.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and baas/.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
