import os
import shutil
import tempfile
import warnings

import numpy as np


class FitscodecTestCase(object):
    def setup_method(self, method):
        self.temp_dir = tempfile.mkdtemp(prefix='fitscodec-test-')

        warnings.resetwarnings()
        warnings.simplefilter('ignore')
        warnings.simplefilter('always', UserWarning)

    def teardown_method(self, method):
        shutil.rmtree(self.temp_dir)

    def temp(self, filename):
        """ Returns the full path to a file in the test temp dir."""

        return os.path.join(self.temp_dir, filename)

    def read(self, filename):
        """Returns the bytes of a file in the test temp dir."""

        with open(self.temp(filename), 'rb') as f:
            return f.read()

    def write(self, filename, data):
        """Writes raw bytes to a file in the test temp dir."""

        with open(self.temp(filename), 'wb') as f:
            f.write(data)
        return self.temp(filename)


def pattern(width, height, lo=0.0, hi=1.0):
    """A width x height ramp of float64 samples running from lo to hi."""

    count = width * height
    if count == 1:
        return np.array([lo], dtype=np.float64)
    return np.linspace(lo, hi, count)


def card_images(*images):
    """Join card images, each padded to 80 columns, into ASCII bytes."""

    return ''.join('%-80s' % image for image in images).encode('ascii')
