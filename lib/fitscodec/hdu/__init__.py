from fitscodec.hdu.hdulist import HDUList
from fitscodec.hdu.image import PrimaryHDU, ImageHDU

__all__ = ['HDUList', 'PrimaryHDU', 'ImageHDU']
