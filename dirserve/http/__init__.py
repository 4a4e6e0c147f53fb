"""
#####################
 :mod:`dirserve.http`
#####################

dirserve doesn't implement all of HTTP, only the parts a file server with a
handler chain needs: parsing request targets, header mappings, and serving
files and directory listings off the disk.

.. contents::
    :local:

.. automodule:: dirserve.http.mapping
.. automodule:: dirserve.http.request
.. automodule:: dirserve.http.resource

"""
