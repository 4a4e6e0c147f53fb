from setuptools import find_packages, setup

version = open('version.txt').read().strip()


classifiers = [ 'Development Status :: 4 - Beta'
              , 'Environment :: Console'
              , 'Intended Audience :: Developers'
              , 'License :: OSI Approved :: MIT License'
              , 'Natural Language :: English'
              , 'Operating System :: OS Independent'
              , 'Programming Language :: Python :: 3'
              , 'Programming Language :: Python :: Implementation :: CPython'
              , 'Topic :: Internet :: WWW/HTTP :: HTTP Servers'
               ]

setup( author = 'dirserve contributors'
     , classifiers = classifiers
     , description = 'A directory server with a chain of Python plugins and scripts'
     , name = 'dirserve'
     , packages = find_packages(exclude=['tests', 'tests.*'])
     , version = version
     , zip_safe = False
     , package_data = {'dirserve': ['request_processor/mime.types']}
     , python_requires = '>=3.7'
     , install_requires = open('requirements.txt').read()
     , extras_require = {'tests': open('requirements_tests.txt').read()}
     , entry_points = {'console_scripts': ['dirserve = dirserve.__main__:main']}
      )
