from .sqlite import CertificateStore

__all__ = ["CertificateStore"]
